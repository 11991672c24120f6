"""
Sliding-window rate limiting per client address.

INVARIANTS:
- Requests over the cap are rejected, never queued
- Enforced before any credential or network work
- Addresses are stored and logged only as truncated SHA-256 hashes
- Addresses idle for a whole window are forgotten
"""

import hashlib
import logging
import math
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ddbrelay.models.failure import RateLimitExceededError

logger = logging.getLogger(__name__)

# 100 requests per 15 minutes per address
DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 15 * 60


def hash_address(address: str) -> str:
    """Hash a client address for privacy-safe storage and logging."""
    return hashlib.sha256(address.encode()).hexdigest()[:12]


@dataclass(frozen=True)
class RateLimitStatus:
    """Quota left for one address, as sent in the RateLimit-* headers."""

    limit: int
    remaining: int
    reset_seconds: int

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_seconds),
        }


class SlidingWindowRateLimiter:
    """
    Tracks request timestamps per address over a sliding window.

    The runtime is a single event loop, so no lock is taken: check() never
    suspends.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: dict[str, deque[float]] = {}
        self._last_sweep = clock()

    def _prune(self, timestamps: deque[float], now: float) -> None:
        while timestamps and now - timestamps[0] >= self.window_seconds:
            timestamps.popleft()

    def _sweep(self, now: float) -> None:
        for address_hash in list(self._requests):
            timestamps = self._requests[address_hash]
            self._prune(timestamps, now)
            if not timestamps:
                del self._requests[address_hash]
        self._last_sweep = now

    def _reset_seconds(self, timestamps: deque[float], now: float) -> int:
        if not timestamps:
            return math.ceil(self.window_seconds)
        return max(0, math.ceil(timestamps[0] + self.window_seconds - now))

    @property
    def tracked_addresses(self) -> int:
        return len(self._requests)

    def check(self, address: str) -> RateLimitStatus:
        """
        Record a request from address and return the quota left.

        Raises:
            RateLimitExceededError: If the address is already at the cap
        """
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)

        address_hash = hash_address(address)
        timestamps = self._requests.setdefault(address_hash, deque())
        self._prune(timestamps, now)

        if len(timestamps) >= self.max_requests:
            logger.warning(
                "RATE_LIMIT_EXCEEDED",
                extra={
                    "address_hash": address_hash,
                    "requests_in_window": len(timestamps),
                    "limit": self.max_requests,
                },
            )
            raise RateLimitExceededError(
                address_hash,
                self.max_requests,
                self.window_seconds,
                reset_seconds=self._reset_seconds(timestamps, now),
            )

        timestamps.append(now)
        return RateLimitStatus(
            limit=self.max_requests,
            remaining=self.max_requests - len(timestamps),
            reset_seconds=self._reset_seconds(timestamps, now),
        )

    def stats(self) -> dict[str, Any]:
        self._sweep(self._clock())
        return {
            "trackedAddresses": len(self._requests),
            "maxRequests": self.max_requests,
            "windowSeconds": self.window_seconds,
        }
