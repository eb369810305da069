"""
Marqeta MCP Server.

Serves the filtered Marqeta tool set over MCP (stdio transport):
- tools/list: name, description, inputSchema for every filtered tool
- tools/call: dispatch to the tool's handler

Usage:
    marqeta-mcp --scope read --service users,cards
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from mq_config.settings import ConfigurationError, Settings
from mq_obs.logging import get_logger, setup_logging
from mq_obs.metrics import start_metrics_server
from mq_obs.tracing import setup_tracing
from mq_tools import __version__
from mq_tools.adapters.marqeta import MarqetaClientWrapper
from mq_tools.base import ToolDefinition
from mq_tools.dispatcher import ToolDispatcher, ToolExecutor
from mq_tools.registry import filter_tools, load_tools

logger = get_logger(__name__)

SERVER_NAME = "marqeta-mcp-server"


class MarqetaMcpServer:
    """Marqeta tools exposed over the Model Context Protocol."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: ToolExecutor | None = None,
        tools_path: str | Path | None = None,
    ):
        """Initialize server.

        Args:
            settings: Application settings (loaded from env if None)
            client: Request executor (built from settings if None)
            tools_path: Tool file (defaults to MARQETA_TOOLS_PATH)

        Raises:
            ConfigurationError: Missing API URL or credentials, invalid
                rate limiter bounds
        """
        self.settings = settings or Settings()
        self.settings.require_credentials()

        self.client = client or MarqetaClientWrapper.from_settings(self.settings)
        self.tools_path = Path(tools_path or self.settings.MARQETA_TOOLS_PATH)

        self.precompiled_tools: list[ToolDefinition] = []
        self.filtered_tools: list[ToolDefinition] = []
        self.dispatcher = ToolDispatcher(self.client)

    def load_tools(self) -> list[ToolDefinition]:
        """Load the tool file and apply MARQETA_SCOPE / MARQETA_SERVICE.

        Raises:
            ToolLoadError: Missing or malformed tool file
        """
        self.precompiled_tools = load_tools(self.tools_path)
        self.filtered_tools = filter_tools(
            self.precompiled_tools,
            scope=self.settings.MARQETA_SCOPE,
            services=self.settings.MARQETA_SERVICE,
        )
        self.dispatcher = ToolDispatcher(self.client, self.filtered_tools)

        logger.info(
            "tools_filtered",
            loaded=len(self.precompiled_tools),
            exposed=len(self.filtered_tools),
            scope=self.settings.MARQETA_SCOPE,
            services=self.settings.MARQETA_SERVICE,
        )
        return self.filtered_tools

    def list_tools(self) -> list[dict[str, Any]]:
        return [tool.to_listing() for tool in self.filtered_tools]

    def build_server(self) -> Server:
        """Create the MCP server with tools/list and tools/call handlers."""
        server = Server(SERVER_NAME, version=__version__)

        @server.list_tools()
        async def handle_list_tools() -> list[types.Tool]:
            return [types.Tool(**listing) for listing in self.list_tools()]

        # Input validation happens in the dispatcher, not in the SDK
        @server.call_tool(validate_input=False)
        async def handle_call_tool(
            name: str, arguments: dict[str, Any] | None
        ) -> list[types.ContentBlock]:
            result = await self.dispatcher.dispatch(name, arguments)
            return result.content

        return server

    async def start(self) -> None:
        """Load tools and serve over stdio until the client disconnects."""
        self.load_tools()
        server = self.build_server()

        logger.info("mcp_server_starting", name=SERVER_NAME, version=__version__)
        try:
            async with stdio_server() as (read_stream, write_stream):
                await server.run(read_stream, write_stream, server.create_initialization_options())
        finally:
            close = getattr(self.client, "close", None)
            if close is not None:
                await close()
            logger.info("mcp_server_stopped")


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="marqeta-mcp", description="Marqeta MCP server (stdio)")
    parser.add_argument("--tools-path", help="Tool file (overrides MARQETA_TOOLS_PATH)")
    parser.add_argument("--service", help="Comma-separated service allow-list (overrides MARQETA_SERVICE)")
    parser.add_argument("--scope", choices=["read", "all"], help="Tool scope (overrides MARQETA_SCOPE)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Overrides LOG_LEVEL",
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment, with CLI flags taking precedence."""
    overrides: dict[str, Any] = {}
    if args.tools_path:
        overrides["MARQETA_TOOLS_PATH"] = args.tools_path
    if args.service:
        overrides["MARQETA_SERVICE"] = args.service
    if args.scope:
        overrides["MARQETA_SCOPE"] = args.scope
    if args.log_level:
        overrides["LOG_LEVEL"] = args.log_level
    return Settings(**overrides)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point for the MCP server."""
    args = parse_args(argv)
    settings = build_settings(args)

    setup_logging(settings)
    setup_tracing(settings, version=__version__)
    start_metrics_server(settings)

    try:
        server = MarqetaMcpServer(settings)
        await server.start()
    except ConfigurationError as e:
        logger.error("mcp_server_config_error", error=str(e))
        return 1
    except Exception as e:
        logger.exception("mcp_server_failed", error=str(e))
        return 1
    return 0


def run() -> None:
    """Console-script wrapper."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("mcp_server_interrupted")
        sys.exit(0)


if __name__ == "__main__":
    run()
