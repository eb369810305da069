"""
Marqeta MCP Applications Package.

Contains:
- mcp_server: MCP stdio server exposing the Marqeta tools
- tool_builder: OpenAPI -> tool file generator
"""

__version__ = "1.0.0"
