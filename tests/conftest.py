"""Pytest fixtures."""

import json
from typing import Any
from unittest.mock import AsyncMock

import pytest

from mq_config.settings import Settings
from mq_tools.base import ToolDefinition


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep the host environment (and any local .env) out of Settings()."""
    for name in Settings.model_fields:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings():
    """Settings with credentials and a fast rate limiter."""
    return Settings(
        _env_file=None,
        MARQETA_API_URL="https://api.test.com",
        MARQETA_USERNAME="test-user",
        MARQETA_PASSWORD="test-pass",
        MARQETA_RATE_LIMIT_INTERVAL_MS=0,
    )


@pytest.fixture
def tool_dicts() -> list[dict[str, Any]]:
    """Tool definitions in tool-file form."""
    return [
        {
            "name": "users_getUser",
            "description": "Get user by ID",
            "service": "users",
            "scope": "read",
            "http": {
                "method": "get",
                "path": "/v3/users/{id}",
                "parameters": {
                    "path": {
                        "id": {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}
                    }
                },
            },
            "inputSchema": {
                "type": "object",
                "properties": {"id": {"type": "string"}},
                "required": ["id"],
                "additionalProperties": False,
            },
            "outputSchema": {"type": "object"},
        },
        {
            "name": "users_createUser",
            "description": "Create a new user",
            "service": "users",
            "scope": "write",
            "http": {
                "method": "post",
                "path": "/v3/users",
                "requestBody": {
                    "contentType": "application/json",
                    "required": True,
                    "schema": {"type": "object", "properties": {"name": {"type": "string"}}},
                },
            },
            "inputSchema": {
                "type": "object",
                "properties": {"name": {"type": "string"}},
                "required": ["name"],
            },
            "outputSchema": {"type": "object"},
        },
        {
            "name": "cards_getCard",
            "description": "Get card",
            "service": "cards",
            "scope": "read",
            "http": {
                "method": "get",
                "path": "/v3/cards/{id}",
                "parameters": {
                    "path": {
                        "id": {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}
                    }
                },
            },
            "inputSchema": {
                "type": "object",
                "properties": {"id": {"type": "string"}},
                "required": ["id"],
            },
            "outputSchema": {"type": "object"},
        },
        {
            "name": "payments_processPayment",
            "description": "Process a payment",
            "service": "payments",
            "scope": "write",
            "http": {
                "method": "post",
                "path": "/v3/payments",
                "requestBody": {
                    "contentType": "application/json",
                    "required": True,
                    "schema": {
                        "type": "object",
                        "properties": {"amount": {"type": "number"}, "currency": {"type": "string"}},
                    },
                },
            },
            "inputSchema": {
                "type": "object",
                "properties": {
                    "amount": {"type": "number", "minimum": 0},
                    "currency": {"type": "string", "enum": ["USD", "EUR", "GBP"]},
                },
                "required": ["amount", "currency"],
            },
            "outputSchema": {"type": "object"},
        },
    ]


@pytest.fixture
def tools(tool_dicts) -> list[ToolDefinition]:
    return [ToolDefinition.model_validate(t) for t in tool_dicts]


@pytest.fixture
def tools_by_name(tools) -> dict[str, ToolDefinition]:
    return {tool.name: tool for tool in tools}


@pytest.fixture
def tools_file(tmp_path, tool_dicts):
    """Tool file written to a temp directory."""
    path = tmp_path / "tools.json"
    path.write_text(json.dumps(tool_dicts, indent=2))
    return path


@pytest.fixture
def mock_client():
    """Request executor stub."""
    client = AsyncMock()
    client.execute_tool_request = AsyncMock(return_value={"success": True})
    return client
