"""Marqeta adapter for the MCP server.

Provides:
- MarqetaClientWrapper: tool definition -> HTTP request, executed under admission control
- RateLimiter: FIFO queue with interval and concurrency gates

Usage:
    from mq_tools.adapters.marqeta import MarqetaClientWrapper

    async with MarqetaClientWrapper.from_settings(settings) as client:
        data = await client.execute_tool_request(tool, {"token": "user_1"})
"""

from .client import MarqetaClientWrapper, PreparedRequest
from .exceptions import (
    MarqetaAPIError,
    MarqetaAuthError,
    MarqetaNotFoundError,
    MarqetaParameterError,
    MarqetaRateLimitError,
    MarqetaTransportError,
    QueueClearedError,
    RateLimiterConfigError,
    RateLimitQueueFullError,
)
from .rate_limiter import RateLimiter, RateLimiterConfig, RateLimiterStatus

__all__ = [
    # Client
    "MarqetaClientWrapper",
    "PreparedRequest",
    # Rate limiting
    "RateLimiter",
    "RateLimiterConfig",
    "RateLimiterStatus",
    # Exceptions
    "MarqetaAPIError",
    "MarqetaAuthError",
    "MarqetaNotFoundError",
    "MarqetaParameterError",
    "MarqetaRateLimitError",
    "MarqetaTransportError",
    "QueueClearedError",
    "RateLimiterConfigError",
    "RateLimitQueueFullError",
]
