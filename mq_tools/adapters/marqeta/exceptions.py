"""Marqeta adapter exceptions.

Custom exception hierarchy for Marqeta API and admission-control errors.
"""

from typing import Any

from mq_config.settings import ConfigurationError


class MarqetaAPIError(Exception):
    """Base exception for Marqeta adapter (status >= 400)."""

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class MarqetaAuthError(MarqetaAPIError):
    """Invalid credentials or insufficient permissions (401/403)."""

    pass


class MarqetaNotFoundError(MarqetaAPIError):
    """Resource not found (404 response)."""

    pass


class MarqetaRateLimitError(MarqetaAPIError):
    """Upstream rate limit exceeded (429 response)."""

    pass


class MarqetaTransportError(MarqetaAPIError):
    """Network failure or timeout; no HTTP response was received."""

    pass


class MarqetaParameterError(MarqetaAPIError):
    """Required path/query/header parameter missing. Raised before any I/O."""

    def __init__(self, parameter: str, location: str):
        super().__init__(f"Required {location} parameter '{parameter}' is missing")
        self.parameter = parameter
        self.location = location


# ============================================================================
# RATE LIMITER
# ============================================================================


class RateLimiterConfigError(ConfigurationError):
    """Rate limiter bounds out of range."""

    pass


class RateLimitQueueFullError(Exception):
    """Admission rejected: the rate limiter queue is at capacity."""

    def __init__(self, retry_after: int, queue_length: int, max_queue_size: int):
        super().__init__(
            f"Rate limit queue is full ({queue_length}/{max_queue_size}). "
            f"Please retry after {retry_after}ms"
        )
        self.retry_after = retry_after
        self.queue_length = queue_length
        self.max_queue_size = max_queue_size


class QueueClearedError(Exception):
    """Queued request dropped by RateLimiter.clear_queue()."""

    def __init__(self, message: str = "Queue cleared"):
        super().__init__(message)
