"""Live arrival predictions for the Macau DSAT bus network."""

__version__ = "0.1.0"
