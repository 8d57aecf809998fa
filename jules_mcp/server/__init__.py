"""MCP server surface -- tools, resources, prompts and process lifecycle."""
