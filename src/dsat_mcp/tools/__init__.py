"""MCP tools exposed by the DSAT server."""
