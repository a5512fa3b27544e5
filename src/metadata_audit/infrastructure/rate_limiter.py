"""
Courtesy rate limiter.

Spaces out request starts by a fixed minimum delay across all concurrent
workers, and keeps simple request statistics for the end-of-run log.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from metadata_audit.constants import DEFAULT_REQUEST_DELAY_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for rate limiter."""
    # Minimum delay between two request starts (seconds)
    delay: float = DEFAULT_REQUEST_DELAY_SECONDS


@dataclass
class RateLimiterMetrics:
    """Snapshot of limiter statistics."""
    total_requests: int
    total_errors: int
    total_wait_time: float
    avg_response_time: float


class RateLimiter:
    """
    Fixed-interval rate limiter shared by all fetch workers.

    Concurrency bounds how many requests are in flight; this bounds how
    quickly new ones may start.
    """

    def __init__(self, config: Optional[RateLimitConfig] = None):
        """
        Initialize rate limiter.

        Args:
            config: Rate limit configuration
        """
        self.config = config or RateLimitConfig()
        self._last_request_time: Optional[float] = None
        self._lock = asyncio.Lock()

        # Statistics
        self._total_requests = 0
        self._total_errors = 0
        self._total_wait_time = 0.0
        self._total_response_time = 0.0

    async def wait(self) -> float:
        """
        Wait until the next request may start.

        Returns:
            Actual time waited (seconds)
        """
        async with self._lock:
            now = time.monotonic()

            if self._last_request_time is not None:
                elapsed = now - self._last_request_time
                wait_time = max(0.0, self.config.delay - elapsed)
            else:
                wait_time = 0.0

            if wait_time > 0:
                await asyncio.sleep(wait_time)
                self._total_wait_time += wait_time

            self._last_request_time = time.monotonic()
            return wait_time

    def record_request(self, response_time: float, success: bool = True) -> None:
        """
        Record a completed request.

        Args:
            response_time: Time taken for request (seconds)
            success: Whether request was successful
        """
        self._total_requests += 1
        self._total_response_time += response_time
        if not success:
            self._total_errors += 1

    def get_metrics(self) -> RateLimiterMetrics:
        """
        Get current limiter statistics.

        Returns:
            RateLimiterMetrics snapshot
        """
        avg = self._total_response_time / self._total_requests if self._total_requests else 0.0
        return RateLimiterMetrics(
            total_requests=self._total_requests,
            total_errors=self._total_errors,
            total_wait_time=self._total_wait_time,
            avg_response_time=avg,
        )
