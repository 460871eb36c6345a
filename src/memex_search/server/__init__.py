"""MCP tool server for memex-search."""
