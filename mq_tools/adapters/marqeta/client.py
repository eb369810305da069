"""Marqeta API client wrapper.

Turns a tool definition plus validated parameters into an HTTP request and
runs it through the rate limiter. Error responses and transport failures are
mapped to MarqetaAPIError subclasses; nothing is retried.
"""

import json
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from mq_config.settings import Settings
from mq_obs.logging import get_logger
from mq_tools import __version__
from mq_tools.base import ToolDefinition

from .exceptions import (
    MarqetaAPIError,
    MarqetaAuthError,
    MarqetaNotFoundError,
    MarqetaParameterError,
    MarqetaRateLimitError,
    MarqetaTransportError,
)
from .rate_limiter import RateLimiter, RateLimiterConfig

logger = get_logger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class PreparedRequest(BaseModel):
    """Fully assembled request, ready to send."""

    method: str
    url: str
    params: dict[str, Any] | None = None
    headers: dict[str, str] | None = None
    body: dict[str, Any] | None = None
    content_type: str | None = None


def _to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _encode_path_value(value: Any) -> str:
    # Same reserved set as JavaScript's encodeURIComponent
    return quote(_to_str(value), safe="!~*'()")


class MarqetaClientWrapper:
    """Marqeta Core API client.

    Provides:
    - Basic auth plus client-identification headers on every request
    - Path/query/header/body assembly from tool definitions
    - Admission control through a per-client RateLimiter
    - Error mapping to MarqetaAPIError subclasses
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        program_short_code: str | None = None,
        rate_limiter_config: RateLimiterConfig | None = None,
        timeout_seconds: float = 30.0,
        settings: Settings | None = None,
    ):
        """Initialize Marqeta client.

        Args:
            base_url: API base URL; https:// is added when no scheme is given
            username: Basic-auth username (application token)
            password: Basic-auth password (admin access token)
            program_short_code: Optional X-Program-Short-Code header value
            rate_limiter_config: Explicit limiter options (rest from settings)
            timeout_seconds: Per-request transport timeout
            settings: Source of environment defaults for the rate limiter
        """
        if not base_url.startswith("http"):
            base_url = f"https://{base_url}"

        headers = {
            "User-Agent": f"mcp-server/{__version__}",
            "X-Marqeta-Client": f"mcp-server/{__version__}",
            "X-Marqeta-Request-Source": "mcp-request",
        }
        if program_short_code:
            headers["X-Program-Short-Code"] = program_short_code

        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.client = httpx.AsyncClient(
            base_url=base_url,
            auth=(username, password),
            headers=headers,
            timeout=timeout_seconds,
        )
        self.rate_limiter = RateLimiter(rate_limiter_config, settings=settings)

    @classmethod
    def from_settings(cls, settings: Settings) -> "MarqetaClientWrapper":
        """Build a client from MARQETA_* settings."""
        return cls(
            base_url=settings.MARQETA_API_URL,
            username=settings.MARQETA_USERNAME,
            password=settings.MARQETA_PASSWORD,
            program_short_code=settings.MARQETA_PROGRAM_SHORT_CODE,
            timeout_seconds=settings.MARQETA_REQUEST_TIMEOUT_SECONDS,
            settings=settings,
        )

    def build_request(self, tool: ToolDefinition, params: dict[str, Any]) -> PreparedRequest:
        """Assemble the HTTP request for a tool call. No network I/O.

        Raises:
            MarqetaParameterError: A required path/query/header parameter is missing
        """
        http = tool.http
        url = http.path
        query: dict[str, Any] = {}
        headers: dict[str, str] = {}
        body: dict[str, Any] | None = None
        content_type: str | None = None

        for key, spec in http.parameters.path.items():
            if params.get(key) is None:
                if spec.required:
                    raise MarqetaParameterError(key, "path")
                continue
            url = url.replace(f"{{{key}}}", _encode_path_value(params[key]))

        for key, spec in http.parameters.query.items():
            if params.get(key) is None:
                if spec.required:
                    raise MarqetaParameterError(key, "query")
                continue
            query[key] = params[key]

        for key, spec in http.parameters.header.items():
            if params.get(key) is None:
                if spec.required:
                    raise MarqetaParameterError(key, "header")
                continue
            headers[spec.name] = _to_str(params[key])

        if http.request_body is not None:
            body_schema = http.request_body.body_schema
            if body_schema.type == "object" and body_schema.properties:
                # Only declared body fields; path/query values never leak in
                body = {key: params[key] for key in body_schema.properties if key in params}
            else:
                consumed = http.parameters.all_keys()
                body = {key: value for key, value in params.items() if key not in consumed}

            content_type = http.request_body.content_type
            if content_type:
                headers["Content-Type"] = content_type

        return PreparedRequest(
            method=http.method.upper(),
            url=url,
            params=query or None,
            headers=headers or None,
            body=body,
            content_type=content_type,
        )

    async def execute_tool_request(self, tool: ToolDefinition, params: dict[str, Any]) -> Any:
        """Execute a tool call against the Marqeta API.

        Args:
            tool: Tool definition
            params: Validated tool input

        Returns:
            Decoded response body (JSON value, text, or None when empty)

        Raises:
            MarqetaParameterError: Missing required parameter (before I/O)
            RateLimitQueueFullError: Rate limiter queue at capacity
            MarqetaAPIError: Status >= 400 (subclass by status)
            MarqetaTransportError: Network failure or timeout
        """
        request = self.build_request(tool, params)
        return await self.rate_limiter.execute(lambda: self._send(request))

    async def _send(self, request: PreparedRequest) -> Any:
        kwargs: dict[str, Any] = {}
        if request.params:
            kwargs["params"] = request.params
        if request.headers:
            kwargs["headers"] = request.headers
        if request.body is not None:
            if request.content_type == FORM_CONTENT_TYPE:
                kwargs["data"] = request.body
            else:
                kwargs["json"] = request.body

        logger.debug("marqeta_request", method=request.method, url=request.url)

        try:
            response = await self.client.request(request.method, request.url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(
                "marqeta_transport_error",
                method=request.method,
                url=request.url,
                error=str(e) or e.__class__.__name__,
            )
            raise MarqetaTransportError(f"HTTP request failed: {str(e) or e.__class__.__name__}")

        if response.status_code >= 400:
            self._handle_error(response)

        return self._decode(response)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _handle_error(self, response: httpx.Response) -> None:
        """Map Marqeta API errors to custom exceptions."""
        status = response.status_code
        payload = self._decode(response)
        message = f"API request failed with status {status}: {json.dumps(payload)}"

        logger.warning("marqeta_api_error", status=status)

        if status in (401, 403):
            raise MarqetaAuthError(message, status_code=status, payload=payload)
        elif status == 404:
            raise MarqetaNotFoundError(message, status_code=status, payload=payload)
        elif status == 429:
            raise MarqetaRateLimitError(message, status_code=status, payload=payload)
        else:
            raise MarqetaAPIError(message, status_code=status, payload=payload)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
