"""Tool Registry.

Loads the precompiled tool file once and narrows it by scope and service.
"""

import json
from pathlib import Path
from typing import Iterable

from pydantic import TypeAdapter, ValidationError

from mq_obs.logging import get_logger
from mq_tools.base import ToolDefinition, ToolScope

logger = get_logger(__name__)

_TOOL_LIST = TypeAdapter(list[ToolDefinition])


class ToolLoadError(Exception):
    """Tool file missing, malformed, or inconsistent. Fatal at startup."""

    pass


class ToolNotFoundError(Exception):
    """No loaded tool has the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Tool not found: {name}")
        self.name = name


def load_tools(path: str | Path) -> list[ToolDefinition]:
    """Read and validate the tool file (a JSON array of tool definitions).

    Raises:
        ToolLoadError: Missing file, invalid JSON, invalid definition, or
            duplicate tool names
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ToolLoadError(f"Tool file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ToolLoadError(f"Tool file is not valid JSON: {path}: {e}") from e

    try:
        tools = _TOOL_LIST.validate_python(raw)
    except ValidationError as e:
        raise ToolLoadError(f"Invalid tool definitions in {path}: {e}") from e

    seen: set[str] = set()
    for tool in tools:
        if tool.name in seen:
            raise ToolLoadError(f"Duplicate tool name: {tool.name}")
        seen.add(tool.name)

    logger.info("tools_loaded", path=str(path), count=len(tools))
    return tools


def parse_services(services: str | Iterable[str] | None) -> set[str] | None:
    """Normalize a comma-separated allow-list. None/empty means no filter."""
    if services is None:
        return None
    if isinstance(services, str):
        services = services.split(",")
    allowed = {s.strip() for s in services if s.strip()}
    return allowed or None


def filter_tools(
    tools: Iterable[ToolDefinition],
    scope: str = "all",
    services: str | Iterable[str] | None = None,
) -> list[ToolDefinition]:
    """Keep tools matching both the scope and the service allow-list.

    Args:
        tools: Loaded tool definitions
        scope: "read" keeps read tools only; anything else keeps all
        services: Comma-separated (or iterable) service names; None keeps all
    """
    allowed = parse_services(services)
    return [
        tool
        for tool in tools
        if (scope != ToolScope.READ.value or tool.scope == ToolScope.READ)
        and (allowed is None or tool.service in allowed)
    ]


class ToolRegistry:
    """Tool registry with scope and service lookup."""

    def __init__(self, tools: Iterable[ToolDefinition] = ()):
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool. Names must be unique."""
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDefinition | None:
        """Get tool by name."""
        return self._tools.get(name)

    def require(self, name: str) -> ToolDefinition:
        """Get tool by name or raise ToolNotFoundError."""
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def filter_by_scope(self, scope: str) -> list[ToolDefinition]:
        return filter_tools(self._tools.values(), scope=scope)

    def filter_by_service(self, services: str | Iterable[str]) -> list[ToolDefinition]:
        return filter_tools(self._tools.values(), services=services)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
