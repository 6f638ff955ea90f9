"""Live-path services: candidate selection, prediction and polling."""
