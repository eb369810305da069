"""Tool Dispatcher.

Binds every tool to a handler that chains input validation, the HTTP call,
best-effort output validation and JSON formatting. Handlers always return a
CallToolResult; failures are reported as text, never raised.
"""

import json
import time
from typing import Any, Awaitable, Callable, Iterable, Protocol

from mcp.types import CallToolResult, TextContent

from mq_obs import metrics
from mq_obs.logging import get_logger
from mq_tools.base import ToolDefinition
from mq_tools.registry import ToolRegistry
from mq_tools.schema import Validator, compile_validator

logger = get_logger(__name__)


class ToolExecutor(Protocol):
    """Anything that can run a tool against the upstream API."""

    async def execute_tool_request(self, tool: ToolDefinition, params: dict[str, Any]) -> Any:
        ...


ToolHandler = Callable[[dict[str, Any] | None], Awaitable[CallToolResult]]


def _text_result(text: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)])


class ToolDispatcher:
    """Routes tool calls to per-tool handlers."""

    def __init__(self, client: ToolExecutor, tools: Iterable[ToolDefinition] = ()):
        """Initialize dispatcher.

        Args:
            client: Request executor (normally MarqetaClientWrapper)
            tools: Tools callable through this dispatcher (already filtered)
        """
        self.client = client
        self.registry = ToolRegistry(tools)
        self._handlers: dict[str, ToolHandler] = {}

    def create_tool_handler(self, tool: ToolDefinition) -> ToolHandler:
        """Build the handler for one tool.

        Validators are compiled on first call and reused afterwards.
        """
        validators: dict[str, Validator] = {}

        async def handler(arguments: dict[str, Any] | None) -> CallToolResult:
            started = time.perf_counter()
            status = "error"
            try:
                if not validators:
                    validators["input"] = compile_validator(tool.input_schema)
                    validators["output"] = compile_validator(tool.output_schema)

                checked = validators["input"].validate(arguments or {})
                if not checked.ok:
                    status = "validation_error"
                    details = ", ".join(str(v) for v in checked.violations)
                    logger.info("tool_input_invalid", tool=tool.name, violations=details)
                    return _text_result(f"Input validation error: {details}")

                response = await self.client.execute_tool_request(tool, checked.value)

                # Non-fatal: the unvalidated response is still returned
                output = validators["output"].validate(response)
                if not output.ok:
                    logger.warning(
                        "tool_output_invalid",
                        tool=tool.name,
                        violations=[str(v) for v in output.violations],
                    )

                status = "success"
                return _text_result(json.dumps(response, indent=2, ensure_ascii=False, default=str))

            except Exception as e:
                logger.error("tool_call_failed", tool=tool.name, error=str(e))
                return _text_result(f"Error: {e}")

            finally:
                metrics.tool_executions_total.labels(tool_name=tool.name, status=status).inc()
                metrics.tool_execution_duration.labels(tool_name=tool.name).observe(
                    time.perf_counter() - started
                )

        return handler

    def get_handler(self, name: str) -> ToolHandler:
        """Handler for a registered tool.

        Raises:
            ToolNotFoundError: Unknown tool name
        """
        handler = self._handlers.get(name)
        if handler is None:
            handler = self.create_tool_handler(self.registry.require(name))
            self._handlers[name] = handler
        return handler

    async def dispatch(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        """Run the named tool.

        Raises:
            ToolNotFoundError: Unknown tool name
        """
        return await self.get_handler(name)(arguments)
