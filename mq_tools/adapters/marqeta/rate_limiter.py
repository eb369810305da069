"""Admission control for outbound Marqeta requests.

Every request goes through one FIFO queue drained by a single asyncio task.
Two gates must both hold before the head of the queue is dispatched:

- at least `interval_ms` since the previous dispatch *started*
- fewer than `max_concurrent` dispatched requests still running

A full queue rejects immediately with RateLimitQueueFullError. Nothing is
retried here.

Usage:
    limiter = RateLimiter(RateLimiterConfig(interval_ms=250, max_concurrent=1))
    data = await limiter.execute(lambda: client.get("/v3/users"))
"""

import asyncio
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel

from mq_config.settings import Settings
from mq_obs import metrics
from mq_obs.logging import get_logger

from .exceptions import QueueClearedError, RateLimiterConfigError, RateLimitQueueFullError

logger = get_logger(__name__)

T = TypeVar("T")

SLOT_POLL_INTERVAL = 0.05  # seconds between concurrency-slot checks


class RateLimiterConfig(BaseModel):
    """Explicit limiter options. Unset fields fall back to Settings."""

    enabled: bool | None = None
    interval_ms: int | None = None
    max_concurrent: int | None = None
    max_queue_size: int | None = None


class RateLimiterStatus(BaseModel):
    """Read-only snapshot for monitoring."""

    enabled: bool
    queue_length: int
    concurrent_requests: int
    config: RateLimiterConfig


@dataclass
class PendingRequest:
    """A queued work item and the future its caller awaits."""

    work: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    enqueued_at: float = field(default_factory=time.monotonic)


class RateLimiter:
    """Bounded-queue, bounded-concurrency, minimum-interval request limiter."""

    def __init__(
        self,
        config: RateLimiterConfig | None = None,
        settings: Settings | None = None,
    ):
        """Initialize rate limiter.

        Args:
            config: Explicit options; any unset option comes from settings
            settings: Environment-sourced defaults (loaded on demand)

        Raises:
            RateLimiterConfigError: interval < 0, max_concurrent < 1 or
                max_queue_size < 0
        """
        config = config or RateLimiterConfig()
        if None in (config.enabled, config.interval_ms, config.max_concurrent, config.max_queue_size):
            settings = settings or Settings()

        self.enabled = (
            config.enabled if config.enabled is not None else settings.MARQETA_RATE_LIMIT_ENABLED
        )
        self.interval_ms = (
            config.interval_ms
            if config.interval_ms is not None
            else settings.MARQETA_RATE_LIMIT_INTERVAL_MS
        )
        self.max_concurrent = (
            config.max_concurrent
            if config.max_concurrent is not None
            else settings.MARQETA_MAX_CONCURRENT_REQUESTS
        )
        self.max_queue_size = (
            config.max_queue_size
            if config.max_queue_size is not None
            else settings.MARQETA_RATE_LIMIT_QUEUE_SIZE
        )

        if self.interval_ms < 0:
            raise RateLimiterConfigError("Rate limit interval must be non-negative")
        if self.max_concurrent < 1:
            raise RateLimiterConfigError("Max concurrent requests must be at least 1")
        if self.max_queue_size < 0:
            raise RateLimiterConfigError("Max queue size must be non-negative")

        self._queue: deque[PendingRequest] = deque()
        self._in_flight = 0
        self._last_dispatch: float | None = None
        self._processing = False
        self._drain_task: asyncio.Task | None = None
        self._running: set[asyncio.Task] = set()

    async def execute(self, work: Callable[[], Awaitable[T]]) -> T:
        """Run `work` under admission control and return its result.

        Raises:
            RateLimitQueueFullError: Queue at capacity; `work` is never called
            QueueClearedError: clear_queue() ran before dispatch
            Exception: Whatever `work` raised, unchanged
        """
        if not self.enabled:
            return await work()

        if len(self._queue) >= self.max_queue_size:
            error = RateLimitQueueFullError(
                retry_after=self.estimated_wait_ms(),
                queue_length=len(self._queue),
                max_queue_size=self.max_queue_size,
            )
            metrics.rate_limiter_rejections_total.labels(reason="queue_full").inc()
            logger.warning(
                "rate_limit_queue_full",
                queue_length=error.queue_length,
                max_queue_size=error.max_queue_size,
                retry_after_ms=error.retry_after,
            )
            raise error

        future = asyncio.get_running_loop().create_future()
        self._queue.append(PendingRequest(work=work, future=future))
        metrics.rate_limiter_queue_depth.set(len(self._queue))

        if not self._processing:
            # Set before the task runs so concurrent callers don't start a second drain
            self._processing = True
            self._drain_task = asyncio.create_task(self._process_queue())

        return await future

    async def _process_queue(self) -> None:
        try:
            while self._queue:
                await self._wait_for_interval()
                await self._wait_for_slot()

                # clear_queue() may have run while we were waiting
                if not self._queue:
                    break

                request = self._queue.popleft()
                metrics.rate_limiter_queue_depth.set(len(self._queue))
                if request.future.done():
                    # Caller went away before dispatch
                    continue

                self._in_flight += 1
                self._last_dispatch = time.monotonic()
                metrics.rate_limiter_in_flight.set(self._in_flight)
                metrics.rate_limiter_wait_duration.observe(self._last_dispatch - request.enqueued_at)

                task = asyncio.create_task(self._run(request))
                self._running.add(task)
                task.add_done_callback(self._running.discard)
        finally:
            self._processing = False

    async def _run(self, request: PendingRequest) -> None:
        try:
            result = await request.work()
        except asyncio.CancelledError:
            request.future.cancel()
            raise
        except Exception as e:
            if not request.future.done():
                request.future.set_exception(e)
        else:
            if not request.future.done():
                request.future.set_result(result)
        finally:
            self._in_flight -= 1
            metrics.rate_limiter_in_flight.set(self._in_flight)

    async def _wait_for_interval(self) -> None:
        if self._last_dispatch is None:
            return
        elapsed = time.monotonic() - self._last_dispatch
        wait = self.interval_ms / 1000 - elapsed
        if wait > 0:
            await asyncio.sleep(wait)

    async def _wait_for_slot(self) -> None:
        while self._in_flight >= self.max_concurrent:
            await asyncio.sleep(SLOT_POLL_INTERVAL)

    def estimated_wait_ms(self) -> int:
        """Rough time for the current queue to drain."""
        batches = math.ceil(len(self._queue) / self.max_concurrent)
        return max(batches * self.interval_ms, self.interval_ms)

    def get_status(self) -> RateLimiterStatus:
        return RateLimiterStatus(
            enabled=self.enabled,
            queue_length=len(self._queue),
            concurrent_requests=self._in_flight,
            config=RateLimiterConfig(
                enabled=self.enabled,
                interval_ms=self.interval_ms,
                max_concurrent=self.max_concurrent,
                max_queue_size=self.max_queue_size,
            ),
        )

    def clear_queue(self) -> int:
        """Fail every queued (not yet dispatched) request. Returns how many."""
        cleared = 0
        while self._queue:
            request = self._queue.popleft()
            if not request.future.done():
                request.future.set_exception(QueueClearedError())
                cleared += 1

        metrics.rate_limiter_queue_depth.set(0)
        if cleared:
            metrics.rate_limiter_rejections_total.labels(reason="queue_cleared").inc(cleared)
            logger.info("rate_limit_queue_cleared", cleared=cleared)
        return cleared
