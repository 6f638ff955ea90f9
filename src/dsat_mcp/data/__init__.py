"""Upstream access, configuration and the static network graph."""
