"""Tests for the Marqeta client wrapper."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from mq_tools import __version__
from mq_tools.adapters.marqeta import (
    MarqetaAPIError,
    MarqetaAuthError,
    MarqetaClientWrapper,
    MarqetaNotFoundError,
    MarqetaParameterError,
    MarqetaRateLimitError,
    MarqetaTransportError,
    RateLimiterConfig,
)
from mq_tools.base import ToolDefinition


@pytest.fixture
def marqeta_client(settings):
    """Create client with test credentials."""
    return MarqetaClientWrapper(
        base_url="https://api.test.com",
        username="test-user",
        password="test-pass",
        settings=settings,
    )


@pytest.fixture
def update_user_tool():
    """PUT with path, query, header and an open body."""
    return ToolDefinition.model_validate(
        {
            "name": "users_updateUser",
            "description": "Update user",
            "service": "users",
            "scope": "write",
            "http": {
                "method": "put",
                "path": "/v3/users/{userId}",
                "parameters": {
                    "path": {"userId": {"name": "userId", "in": "path", "required": True}},
                    "query": {"version": {"name": "version", "in": "query", "required": False}},
                    "header": {
                        "idempotencyKey": {
                            "name": "Idempotency-Key",
                            "in": "header",
                            "required": False,
                        }
                    },
                },
                "requestBody": {"contentType": "application/json", "schema": {"type": "object"}},
            },
            "inputSchema": {"type": "object"},
        }
    )


@pytest.fixture
def list_transactions_tool():
    """GET with a required query and a required header."""
    return ToolDefinition.model_validate(
        {
            "name": "transactions_listTransactions",
            "description": "List transactions",
            "service": "transactions",
            "scope": "read",
            "http": {
                "method": "get",
                "path": "/v3/transactions",
                "parameters": {
                    "query": {"user_token": {"name": "user_token", "in": "query", "required": True}},
                    "header": {
                        "programShortCode": {
                            "name": "X-Program-Short-Code",
                            "in": "header",
                            "required": True,
                        }
                    },
                },
            },
            "inputSchema": {"type": "object"},
        }
    )


@pytest.fixture
def create_user_note_tool():
    """POST with path, query and a declared object body."""
    return ToolDefinition.model_validate(
        {
            "name": "users_createUserNote",
            "description": "Create user note",
            "service": "users",
            "scope": "write",
            "http": {
                "method": "post",
                "path": "/v3/users/{userId}/notes",
                "parameters": {
                    "path": {"userId": {"name": "userId", "in": "path", "required": True}},
                    "query": {"version": {"name": "version", "in": "query", "required": False}},
                },
                "requestBody": {
                    "contentType": "application/json",
                    "schema": {
                        "type": "object",
                        "properties": {"name": {"type": "string"}, "email": {"type": "string"}},
                    },
                },
            },
            "inputSchema": {"type": "object"},
        }
    )


def ok(payload=None, status=200):
    return httpx.Response(status, json=payload if payload is not None else {"success": True})


class TestInit:
    """Construction and default headers."""

    def test_adds_scheme_and_identification_headers(self, settings):
        client = MarqetaClientWrapper(
            base_url="sandbox-api.marqeta.com/v3",
            username="u",
            password="p",
            program_short_code="prog",
            settings=settings,
        )

        assert client.base_url == "https://sandbox-api.marqeta.com/v3"
        assert client.client.headers["X-Marqeta-Client"] == f"mcp-server/{__version__}"
        assert client.client.headers["User-Agent"] == f"mcp-server/{__version__}"
        assert client.client.headers["X-Marqeta-Request-Source"] == "mcp-request"
        assert client.client.headers["X-Program-Short-Code"] == "prog"

    def test_program_short_code_optional(self, marqeta_client):
        assert "X-Program-Short-Code" not in marqeta_client.client.headers

    def test_from_settings(self, settings):
        client = MarqetaClientWrapper.from_settings(settings)

        assert client.base_url == "https://api.test.com"
        assert client.rate_limiter.interval_ms == 0

    def test_explicit_rate_limiter_config(self, settings):
        client = MarqetaClientWrapper(
            base_url="https://api.test.com",
            username="u",
            password="p",
            rate_limiter_config=RateLimiterConfig(max_concurrent=1),
            settings=settings,
        )

        assert client.rate_limiter.max_concurrent == 1


class TestBuildRequest:
    """Request assembly from tool definitions."""

    def test_path_parameter_substituted_and_encoded(self, marqeta_client, tools_by_name):
        request = marqeta_client.build_request(tools_by_name["users_getUser"], {"id": "a b/c"})

        assert request.method == "GET"
        assert request.url == "/v3/users/a%20b%2Fc"
        assert request.body is None

    def test_missing_path_parameter(self, marqeta_client, tools_by_name):
        with pytest.raises(MarqetaParameterError) as exc_info:
            marqeta_client.build_request(tools_by_name["users_getUser"], {})

        assert str(exc_info.value) == "Required path parameter 'id' is missing"
        assert exc_info.value.parameter == "id"

    def test_query_and_header_parameters(self, marqeta_client, update_user_tool):
        request = marqeta_client.build_request(
            update_user_tool,
            {"userId": "u1", "version": 2, "idempotencyKey": True},
        )

        assert request.url == "/v3/users/u1"
        assert request.params == {"version": 2}
        assert request.headers["Idempotency-Key"] == "true"
        assert request.headers["Content-Type"] == "application/json"

    def test_open_body_excludes_consumed_parameters(self, marqeta_client, update_user_tool):
        request = marqeta_client.build_request(
            update_user_tool,
            {"userId": "u1", "version": 2, "name": "Jane", "email": "jane@example.com"},
        )

        assert request.body == {"name": "Jane", "email": "jane@example.com"}

    def test_declared_body_keeps_only_declared_fields(self, marqeta_client, tools_by_name):
        request = marqeta_client.build_request(
            tools_by_name["payments_processPayment"],
            {"amount": 10, "currency": "USD", "note": "ignored"},
        )

        assert request.method == "POST"
        assert request.body == {"amount": 10, "currency": "USD"}

    def test_optional_parameters_omitted(self, marqeta_client, update_user_tool):
        request = marqeta_client.build_request(update_user_tool, {"userId": "u1"})

        assert request.params is None
        assert "Idempotency-Key" not in request.headers

    def test_none_counts_as_missing(self, marqeta_client, update_user_tool):
        request = marqeta_client.build_request(
            update_user_tool, {"userId": "u1", "version": None, "idempotencyKey": None}
        )

        assert request.params is None
        assert "Idempotency-Key" not in request.headers

    def test_none_required_path_parameter(self, marqeta_client, tools_by_name):
        with pytest.raises(MarqetaParameterError, match="Required path parameter 'id' is missing"):
            marqeta_client.build_request(tools_by_name["users_getUser"], {"id": None})


class TestExecuteToolRequest:
    """Request execution and error mapping."""

    @pytest.mark.asyncio
    async def test_success_returns_decoded_body(self, marqeta_client, tools_by_name):
        with patch.object(
            marqeta_client.client, "request", AsyncMock(return_value=ok({"token": "u1"}))
        ) as mock_request:
            result = await marqeta_client.execute_tool_request(
                tools_by_name["users_getUser"], {"id": "u1"}
            )

        assert result == {"token": "u1"}
        mock_request.assert_called_once_with("GET", "/v3/users/u1")

    @pytest.mark.asyncio
    async def test_json_body_sent(self, marqeta_client, tools_by_name):
        with patch.object(
            marqeta_client.client, "request", AsyncMock(return_value=ok(status=201))
        ) as mock_request:
            await marqeta_client.execute_tool_request(
                tools_by_name["users_createUser"], {"name": "Jane"}
            )

        call_kwargs = mock_request.call_args.kwargs
        assert call_kwargs["json"] == {"name": "Jane"}
        assert call_kwargs["headers"]["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_form_body_sent_as_data(self, marqeta_client, update_user_tool):
        form_tool = update_user_tool.model_copy(
            update={
                "http": update_user_tool.http.model_copy(
                    update={
                        "request_body": update_user_tool.http.request_body.model_copy(
                            update={"content_type": "application/x-www-form-urlencoded"}
                        )
                    }
                )
            }
        )

        with patch.object(
            marqeta_client.client, "request", AsyncMock(return_value=ok())
        ) as mock_request:
            await marqeta_client.execute_tool_request(form_tool, {"userId": "u1", "name": "Jane"})

        assert mock_request.call_args.kwargs["data"] == {"name": "Jane"}
        assert "json" not in mock_request.call_args.kwargs

    @pytest.mark.asyncio
    async def test_empty_response_is_none(self, marqeta_client, tools_by_name):
        with patch.object(
            marqeta_client.client, "request", AsyncMock(return_value=httpx.Response(204))
        ):
            result = await marqeta_client.execute_tool_request(
                tools_by_name["users_getUser"], {"id": "u1"}
            )

        assert result is None

    @pytest.mark.asyncio
    async def test_text_response_returned_as_text(self, marqeta_client, tools_by_name):
        with patch.object(
            marqeta_client.client, "request", AsyncMock(return_value=httpx.Response(200, text="pong"))
        ):
            result = await marqeta_client.execute_tool_request(
                tools_by_name["users_getUser"], {"id": "u1"}
            )

        assert result == "pong"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error_class",
        [
            (400, MarqetaAPIError),
            (401, MarqetaAuthError),
            (403, MarqetaAuthError),
            (404, MarqetaNotFoundError),
            (429, MarqetaRateLimitError),
            (500, MarqetaAPIError),
        ],
    )
    async def test_error_status_mapping(self, marqeta_client, tools_by_name, status, error_class):
        payload = {"error_message": "nope", "error_code": "123"}
        with patch.object(
            marqeta_client.client,
            "request",
            AsyncMock(return_value=httpx.Response(status, json=payload)),
        ):
            with pytest.raises(error_class) as exc_info:
                await marqeta_client.execute_tool_request(
                    tools_by_name["users_getUser"], {"id": "u1"}
                )

        assert exc_info.value.status_code == status
        assert exc_info.value.payload == payload
        assert str(exc_info.value).startswith(f"API request failed with status {status}: ")
        assert '"error_message": "nope"' in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error(self, marqeta_client, tools_by_name):
        with patch.object(
            marqeta_client.client,
            "request",
            AsyncMock(side_effect=httpx.ConnectError("connection refused")),
        ):
            with pytest.raises(MarqetaTransportError, match="HTTP request failed: connection refused"):
                await marqeta_client.execute_tool_request(
                    tools_by_name["users_getUser"], {"id": "u1"}
                )

    @pytest.mark.asyncio
    async def test_missing_parameter_makes_no_request(self, marqeta_client, tools_by_name):
        with patch.object(marqeta_client.client, "request", AsyncMock()) as mock_request:
            with pytest.raises(MarqetaParameterError):
                await marqeta_client.execute_tool_request(tools_by_name["users_getUser"], {})

        mock_request.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params,location,parameter",
        [
            ({"programShortCode": "prog"}, "query", "user_token"),
            ({"user_token": "u1"}, "header", "programShortCode"),
            ({"user_token": None, "programShortCode": "prog"}, "query", "user_token"),
        ],
    )
    async def test_missing_query_or_header_makes_no_request(
        self, marqeta_client, list_transactions_tool, params, location, parameter
    ):
        with patch.object(marqeta_client.client, "request", AsyncMock()) as mock_request:
            with pytest.raises(MarqetaParameterError) as exc_info:
                await marqeta_client.execute_tool_request(list_transactions_tool, params)

        assert exc_info.value.location == location
        assert exc_info.value.parameter == parameter
        mock_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_required_query_and_header_sent(self, marqeta_client, list_transactions_tool):
        with patch.object(
            marqeta_client.client, "request", AsyncMock(return_value=ok({"data": []}))
        ) as mock_request:
            await marqeta_client.execute_tool_request(
                list_transactions_tool, {"user_token": "u1", "programShortCode": "prog"}
            )

        mock_request.assert_called_once_with(
            "GET",
            "/v3/transactions",
            params={"user_token": "u1"},
            headers={"X-Program-Short-Code": "prog"},
        )

    @pytest.mark.asyncio
    async def test_post_splits_path_query_and_body(self, marqeta_client, create_user_note_tool):
        with patch.object(
            marqeta_client.client, "request", AsyncMock(return_value=ok(status=201))
        ) as mock_request:
            await marqeta_client.execute_tool_request(
                create_user_note_tool,
                {"userId": "1", "version": "v2", "name": "A", "email": "a@b.com"},
            )

        mock_request.assert_called_once_with(
            "POST",
            "/v3/users/1/notes",
            params={"version": "v2"},
            headers={"Content-Type": "application/json"},
            json={"name": "A", "email": "a@b.com"},
        )

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self, settings):
        async with MarqetaClientWrapper("https://api.test.com", "u", "p", settings=settings) as client:
            assert not client.client.is_closed

        assert client.client.is_closed
