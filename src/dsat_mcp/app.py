"""Shared FastMCP instance.

Tool modules register themselves on ``mcp`` at import time; server.py
imports them before starting, so nothing here imports server.py.
"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP(
    "DSAT Transit",
    instructions=(
        "Macau bus network. Look up stops by code, name or position, then ask "
        "for live arrival predictions at a stop."
    ),
)
