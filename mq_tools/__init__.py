"""Marqeta MCP Tool System.

Tool definitions, registry/filtering, schema validation and the Marqeta
request executor.
"""

__version__ = "1.0.0"

from mq_tools.base import ToolDefinition, ToolScope  # noqa: E402
from mq_tools.registry import (  # noqa: E402
    ToolLoadError,
    ToolNotFoundError,
    ToolRegistry,
    filter_tools,
    load_tools,
)

__all__ = [
    "ToolDefinition",
    "ToolLoadError",
    "ToolNotFoundError",
    "ToolRegistry",
    "ToolScope",
    "filter_tools",
    "load_tools",
]
