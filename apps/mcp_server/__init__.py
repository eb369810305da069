"""
Marqeta MCP Server Application.

Serves the filtered tool set over MCP (stdio).
"""
