from __future__ import annotations

import asyncio
import random
import time
from collections import deque
from typing import Deque

from intune_reconciler.graph.errors import GraphAPIError, GraphErrorCategory
from intune_reconciler.utils.logging import get_logger


_logger = get_logger(__name__)


class RateLimiter:
    """Sliding-window limiter for Intune write traffic.

    Intune allows roughly 100 writes and 1000 total requests per 20 second
    window per tenant. A ``$batch`` POST counts once here; Graph meters the
    inner requests separately and answers 429 per item when exceeded.
    """

    max_write_requests_per_window: int = 100
    max_total_requests_per_window: int = 1000
    window_seconds: float = 20.0

    max_retries: int = 3
    base_retry_delay: float = 1.0
    max_retry_delay: float = 32.0

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._request_times: Deque[float] = deque()
        self._write_request_times: Deque[float] = deque()
        self._last_rate_limit_time: float | None = None
        self._consecutive_rate_limits = 0

    @staticmethod
    def _now() -> float:
        return time.monotonic()

    async def can_make_request(self, *, is_write: bool) -> bool:
        async with self._lock:
            self._cleanup_locked()
            if len(self._request_times) >= self.max_total_requests_per_window:
                return False
            if (
                is_write
                and len(self._write_request_times) >= self.max_write_requests_per_window
            ):
                _logger.debug(
                    "Write window exhausted",
                    write=len(self._write_request_times),
                    limit=self.max_write_requests_per_window,
                )
                return False
            return True

    async def record_request(self, *, is_write: bool) -> None:
        async with self._lock:
            now = self._now()
            self._request_times.append(now)
            if is_write:
                self._write_request_times.append(now)

    async def record_rate_limit(self) -> None:
        async with self._lock:
            self._last_rate_limit_time = self._now()
            self._consecutive_rate_limits += 1
            _logger.warning(
                "Rate limit encountered",
                consecutive=self._consecutive_rate_limits,
            )

    async def reset_rate_limit_tracking(self) -> None:
        async with self._lock:
            self._consecutive_rate_limits = 0

    async def calculate_delay(self, *, is_write: bool) -> float:
        async with self._lock:
            self._cleanup_locked()

            if (
                self._last_rate_limit_time is not None
                and self._now() - self._last_rate_limit_time < 60
            ):
                return min(self._consecutive_rate_limits * 2.0, 10.0)

            if is_write:
                utilization = (
                    len(self._write_request_times) / self.max_write_requests_per_window
                )
                if utilization > 0.8:
                    return 0.5 * (utilization - 0.8) * 10

            utilization_total = (
                len(self._request_times) / self.max_total_requests_per_window
            )
            if utilization_total > 0.8:
                return 0.5 * (utilization_total - 0.8) * 10
            return 0.0

    def calculate_retry_delay(
        self,
        *,
        attempt: int,
        retry_after_header: str | None = None,
    ) -> float:
        if retry_after_header:
            try:
                return max(float(retry_after_header), 0.0)
            except ValueError:
                _logger.debug("Invalid Retry-After header", header=retry_after_header)

        exponential = self.base_retry_delay * (2 ** max(0, attempt - 1))
        jitter = exponential * random.uniform(0.8, 1.2)
        return min(jitter, self.max_retry_delay)

    def should_retry(self, *, attempt: int, error: Exception) -> bool:
        if attempt > self.max_retries:
            _logger.warning("Maximum retries exceeded", attempt=attempt)
            return False
        if isinstance(error, asyncio.TimeoutError):
            return True
        if isinstance(error, GraphAPIError):
            return error.category in {
                GraphErrorCategory.RATE_LIMIT,
                GraphErrorCategory.NETWORK,
            } or error.is_retriable
        return False

    def _cleanup_locked(self) -> None:
        cutoff = self._now() - self.window_seconds
        while self._request_times and self._request_times[0] < cutoff:
            self._request_times.popleft()
        while self._write_request_times and self._write_request_times[0] < cutoff:
            self._write_request_times.popleft()


__all__ = ["RateLimiter"]
