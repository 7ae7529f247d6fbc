"""
Fixed-window rate limiting keyed by client IP.

Each limiter owns its counters; the application creates one global limiter
and one for the authentication routes and keeps both on ``app.state``.
"""

import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional

import structlog
from fastapi import Request

from api.errors import RateLimitError
from utilities.logger import SecurityAuditLogger

logger = structlog.get_logger(__name__)

GLOBAL_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
AUTH_LIMIT_MESSAGE = "Too many authentication attempts, please try again later."


@dataclass
class ClientWindowCounter:
    """Request tally for one client in the current window."""
    count: int
    reset_time: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single ``check`` call."""
    allowed: bool
    limit: int
    count: int
    reset_time: float

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    def retry_after(self, now: float) -> int:
        return max(0, math.ceil(self.reset_time - now))

    def headers(self, now: Optional[float] = None) -> Dict[str, str]:
        """
        Get rate limit headers for the response.

        Args:
            now: Current clock value, used for ``Retry-After`` on rejections

        Returns:
            Dictionary with rate limit headers
        """
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_time)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after(time.time() if now is None else now))
        return headers


class FixedWindowRateLimiter:
    """
    Thread-safe fixed-window counter per key.

    A key gets ``max_requests`` requests per window; the window starts at the
    key's first request and restarts on the first request after it expires.
    """

    def __init__(
        self,
        window_seconds: float,
        max_requests: int,
        name: str = "global",
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize rate limiter.

        Args:
            window_seconds: Window length in seconds
            max_requests: Requests allowed per key per window
            name: Label used in logs
            clock: Returns the current time in seconds
        """
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")

        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.name = name
        self.clock = clock
        self._counters: Dict[str, ClientWindowCounter] = {}
        self._lock = Lock()

        logger.info(
            "Rate limiter initialized",
            limiter=name,
            window_seconds=window_seconds,
            max_requests=max_requests
        )

    def check(self, key: str) -> RateLimitDecision:
        """
        Count a request for ``key`` and decide whether it may proceed.

        Args:
            key: Client identifier (IP address)

        Returns:
            RateLimitDecision; ``allowed`` is False once the count exceeds the limit
        """
        with self._lock:
            now = self.clock()
            counter = self._counters.get(key)

            if counter is None or now > counter.reset_time:
                counter = ClientWindowCounter(count=1, reset_time=now + self.window_seconds)
                self._counters[key] = counter
            else:
                counter.count += 1

            return RateLimitDecision(
                allowed=counter.count <= self.max_requests,
                limit=self.max_requests,
                count=counter.count,
                reset_time=counter.reset_time
            )

    def get(self, key: str) -> Optional[ClientWindowCounter]:
        """Return a snapshot of the counter for ``key``."""
        with self._lock:
            counter = self._counters.get(key)
            if counter is None:
                return None
            return ClientWindowCounter(count=counter.count, reset_time=counter.reset_time)

    def sweep(self, now: Optional[float] = None) -> int:
        """
        Delete counters whose window has ended.

        Returns:
            Number of counters removed
        """
        with self._lock:
            now = self.clock() if now is None else now
            expired = [key for key, counter in self._counters.items() if now > counter.reset_time]
            for key in expired:
                del self._counters[key]
            return len(expired)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one key, or every key when ``key`` is None."""
        with self._lock:
            if key is None:
                self._counters.clear()
            else:
                self._counters.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)


def get_client_ip(request: Request) -> str:
    """Client address used as the rate limit key."""
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def enforce_auth_rate_limit(request: Request) -> RateLimitDecision:
    """
    Apply the authentication limiter to the current request.

    Raises:
        RateLimitError: If the client exceeded the authentication ceiling
    """
    limiter: FixedWindowRateLimiter = request.app.state.auth_rate_limiter
    client_ip = get_client_ip(request)
    decision = limiter.check(client_ip)

    if not decision.allowed:
        SecurityAuditLogger().bind_context(
            client_ip=client_ip,
            method=request.method,
            path=request.url.path
        ).log_rate_limited(limiter.name, decision.count, decision.limit)
        raise RateLimitError(
            AUTH_LIMIT_MESSAGE,
            "Rate limit exceeded. Please try again later.",
            headers=decision.headers(limiter.clock())
        )

    return decision
