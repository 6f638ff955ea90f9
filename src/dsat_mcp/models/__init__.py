"""Pydantic models for the static graph, live snapshots and responses."""
