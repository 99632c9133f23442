"""Per-visitor rate limiting and the tenant monthly quota check.

The limiter is process-local: each worker process counts independently, so a
deployment with several instances needs a shared counter (e.g. Redis) behind the
same check() interface.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from app.core.config import settings

logger = logging.getLogger(__name__)

UNKNOWN_IDENTITY = "unknown"
SWEEP_INTERVAL_SECONDS = 5 * 60


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int | None = None  # whole seconds, only set when rejected


@dataclass
class _Window:
    count: int
    reset_at: float


class SlidingWindowRateLimiter:
    """
    Fixed-size window per caller identity: the first request opens a window of
    window_seconds, up to max_requests are allowed inside it.

    Expired entries are treated as absent on access and removed by a lazy sweep that
    runs at most once per sweep interval, so no background timer is needed.
    """

    def __init__(
        self,
        window_seconds: float = 60,
        max_requests: int = 20,
        sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._entries: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._entries)

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.sweep_interval_seconds:
            return
        self._last_sweep = now
        expired = [key for key, entry in self._entries.items() if entry.reset_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Rate limiter swept %d expired entries", len(expired))

    def check(self, identity: str) -> RateLimitDecision:
        """Count one request for identity and decide whether it may proceed."""
        with self._lock:
            now = self._clock()
            self._sweep(now)

            entry = self._entries.get(identity)
            if entry is None or entry.reset_at <= now:
                self._entries[identity] = _Window(count=1, reset_at=now + self.window_seconds)
                return RateLimitDecision(allowed=True)

            if entry.count >= self.max_requests:
                retry_after = max(1, math.ceil(entry.reset_at - now))
                return RateLimitDecision(allowed=False, retry_after=retry_after)

            entry.count += 1
            return RateLimitDecision(allowed=True)


def check_tenant_monthly_limit(messages_used: int, message_limit: int) -> bool:
    """True while the tenant still has quota (strict less-than: used == limit is blocked)."""
    return messages_used < message_limit


def caller_identity(request: Request) -> str:
    """
    Identity used for the visitor rate limit: first X-Forwarded-For hop, then X-Real-IP,
    then the direct peer. Untraceable callers share the "unknown" bucket.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_IDENTITY


_visitor_limiter = SlidingWindowRateLimiter(
    window_seconds=settings.rate_limit_window_seconds,
    max_requests=settings.rate_limit_max_requests,
)


def get_rate_limiter() -> SlidingWindowRateLimiter:
    """FastAPI dependency returning the process-wide visitor limiter."""
    return _visitor_limiter
