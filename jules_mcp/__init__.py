"""Jules MCP server -- Jules REST bridge with a local recurring-task scheduler."""

__version__ = "1.0.0"
