"""
Tool Builder.

Generates the precompiled tool file from one or more OpenAPI documents (JSON).

Usage:
    marqeta-mcp-build-tools specs/core-api.json --output tools.json
    marqeta-mcp-build-tools specs/users.json specs/cards.json --service-from-filename
"""

import argparse
import json
import sys
from pathlib import Path

from mq_config.settings import Settings
from mq_obs.logging import get_logger, setup_logging
from mq_tools.base import ToolDefinition
from mq_tools.openapi import generate_tools

logger = get_logger(__name__)


def build_tools(
    spec_paths: list[Path],
    service: str | None = None,
    service_from_filename: bool = False,
) -> list[ToolDefinition]:
    """Generate tools from every document, rejecting duplicate names."""
    tools: list[ToolDefinition] = []
    seen: set[str] = set()

    for spec_path in spec_paths:
        document = json.loads(spec_path.read_text(encoding="utf-8"))
        doc_service = service or (spec_path.stem.replace("-", "_") if service_from_filename else None)

        for tool in generate_tools(document, service=doc_service):
            if tool.name in seen:
                raise ValueError(f"Duplicate tool name: {tool.name} (from {spec_path})")
            seen.add(tool.name)
            tools.append(tool)

    return tools


def write_tools(tools: list[ToolDefinition], output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(
        json.dumps([tool.to_json() for tool in tools], indent=2, ensure_ascii=False),
        encoding="utf-8",
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="marqeta-mcp-build-tools",
        description="Generate the MCP tool file from OpenAPI documents",
    )
    parser.add_argument("specs", nargs="+", type=Path, help="OpenAPI documents (JSON)")
    parser.add_argument("--output", type=Path, default=Path("tools.json"))
    parser.add_argument("--service", help="Service tag for every generated tool")
    parser.add_argument(
        "--service-from-filename",
        action="store_true",
        help="Use each document's file name as its service tag",
    )
    args = parser.parse_args(argv)

    setup_logging(Settings())

    try:
        tools = build_tools(args.specs, args.service, args.service_from_filename)
    except Exception as e:
        logger.error("tool_build_failed", error=str(e))
        return 1

    write_tools(tools, args.output)
    logger.info("tool_file_written", path=str(args.output), count=len(tools))
    return 0


if __name__ == "__main__":
    sys.exit(main())
