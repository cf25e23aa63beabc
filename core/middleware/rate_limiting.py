"""
Per-client rate limiting for the public application endpoint.

A fixed window that resets on expiry: the first hit opens a window, further
hits increment the counter while under the cap, and hits over the cap are
rejected without touching the window. The algorithm lives behind a
`RateLimitStore` so a single instance can keep counters in process memory
while multi-instance deployments share them through Redis.
"""

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import redis.asyncio as redis
from fastapi import Request, Response
from redis.asyncio import Redis
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0


class RateLimitExceeded(Exception):
    """Raised when a client has used up its attempts for the current window."""

    def __init__(self, decision: RateLimitDecision):
        self.decision = decision
        self.retry_after = decision.retry_after
        super().__init__(f"Rate limit exceeded, retry after {decision.retry_after}s")


class RateLimitStore(ABC):
    """Backing store for rate limit windows."""

    @abstractmethod
    async def hit(
        self, key: str, max_requests: int, window_seconds: int
    ) -> RateLimitDecision:
        """
        Record one attempt for key and decide whether it is allowed.

        Args:
            key: Identifier of the client being limited
            max_requests: Attempts allowed per window
            window_seconds: Window length in seconds

        Returns:
            The decision for this attempt
        """

    async def reset(self, key: str) -> None:
        """Forget the window for key."""

    async def close(self) -> None:
        """Release any held connections."""


@dataclass
class _Window:
    count: int
    expires_at: float


class InMemoryRateLimitStore(RateLimitStore):
    """
    Process-local store.

    Not shared between processes: each server instance enforces its own limit.
    Expired windows are purged every `purge_every` hits so the map does not
    grow with one entry per client ever seen.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        purge_every: int = 1000,
    ):
        self._windows: Dict[str, _Window] = {}
        self._clock = clock
        self._purge_every = purge_every
        self._hits_since_purge = 0

    def __len__(self) -> int:
        return len(self._windows)

    async def hit(
        self, key: str, max_requests: int, window_seconds: int
    ) -> RateLimitDecision:
        now = self._clock()
        self._maybe_purge(now)

        window = self._windows.get(key)
        if window is None or window.expires_at <= now:
            self._windows[key] = _Window(count=1, expires_at=now + window_seconds)
            return RateLimitDecision(
                allowed=True, limit=max_requests, remaining=max(0, max_requests - 1)
            )

        if window.count < max_requests:
            window.count += 1
            return RateLimitDecision(
                allowed=True, limit=max_requests, remaining=max_requests - window.count
            )

        return RateLimitDecision(
            allowed=False,
            limit=max_requests,
            remaining=0,
            retry_after=max(1, math.ceil(window.expires_at - now)),
        )

    async def reset(self, key: str) -> None:
        self._windows.pop(key, None)

    def _maybe_purge(self, now: float) -> None:
        self._hits_since_purge += 1
        if self._hits_since_purge < self._purge_every:
            return
        self._hits_since_purge = 0
        expired = [key for key, window in self._windows.items() if window.expires_at <= now]
        for key in expired:
            del self._windows[key]


# KEYS[1] = window key, ARGV[1] = max requests, ARGV[2] = window seconds
# Returns {allowed, count, ttl}
_FIXED_WINDOW_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if not current then
    redis.call('SET', KEYS[1], 1, 'EX', tonumber(ARGV[2]))
    return {1, 1, tonumber(ARGV[2])}
end
current = tonumber(current)
local ttl = redis.call('TTL', KEYS[1])
if current < tonumber(ARGV[1]) then
    current = redis.call('INCR', KEYS[1])
    return {1, current, ttl}
end
return {0, current, ttl}
"""


class RedisRateLimitStore(RateLimitStore):
    """
    Redis-backed store shared by every server instance.

    The window is one counter key whose TTL is the window expiry; the whole
    check runs as a single Lua script so concurrent hits cannot interleave.
    Fails open when Redis is unavailable.
    """

    def __init__(self, redis_client: Redis, key_prefix: str = "ratelimit"):
        """
        Initialize store.

        Args:
            redis_client: Async Redis client instance
            key_prefix: Prefix for Redis keys
        """
        self.redis = redis_client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, redis_url: str, key_prefix: str = "ratelimit") -> "RedisRateLimitStore":
        client = redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )
        return cls(client, key_prefix=key_prefix)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    async def hit(
        self, key: str, max_requests: int, window_seconds: int
    ) -> RateLimitDecision:
        try:
            allowed, count, ttl = await self.redis.eval(
                _FIXED_WINDOW_SCRIPT, 1, self._key(key), max_requests, window_seconds
            )
        except RedisConnectionError as e:
            logger.error(f"Redis connection error in rate limiter: {e}")
            return RateLimitDecision(allowed=True, limit=max_requests, remaining=max_requests)
        except RedisError as e:
            logger.error(f"Redis error in rate limiter: {e}")
            return RateLimitDecision(allowed=True, limit=max_requests, remaining=max_requests)

        count = int(count)
        if int(allowed):
            return RateLimitDecision(
                allowed=True, limit=max_requests, remaining=max(0, max_requests - count)
            )

        ttl = int(ttl)
        return RateLimitDecision(
            allowed=False,
            limit=max_requests,
            remaining=0,
            retry_after=ttl if ttl > 0 else window_seconds,
        )

    async def reset(self, key: str) -> None:
        try:
            await self.redis.delete(self._key(key))
        except RedisError as e:
            logger.error(f"Failed to reset rate limit for {key}: {e}")

    async def close(self) -> None:
        await self.redis.aclose()
        logger.info("Rate limiter closed")


class PublicApplyRateLimiter:
    """Limits public application attempts per client IP."""

    def __init__(
        self,
        store: RateLimitStore,
        max_requests: int = 5,
        window_seconds: int = 600,
        key_prefix: str = "public_apply",
    ):
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix

    async def check(self, key: str) -> RateLimitDecision:
        """Record an attempt from key and return the decision."""
        decision = await self.store.hit(
            f"{self.key_prefix}:{key}", self.max_requests, self.window_seconds
        )
        if not decision.allowed:
            logger.info(
                f"Public apply rate limit hit for {key}, retry after {decision.retry_after}s"
            )
        return decision

    async def enforce(self, key: str) -> RateLimitDecision:
        """Like `check`, but raise `RateLimitExceeded` on rejection."""
        decision = await self.check(key)
        if not decision.allowed:
            raise RateLimitExceeded(decision)
        return decision


def create_rate_limit_store(backend: str, redis_url: Optional[str] = None) -> RateLimitStore:
    """
    Build the configured store.

    Args:
        backend: "memory" or "redis"
        redis_url: Redis connection URL, required for the redis backend

    Returns:
        A rate limit store
    """
    if backend == "redis":
        if not redis_url:
            raise ValueError("redis_url is required for the redis rate limit backend")
        logger.info("Using Redis rate limit store")
        return RedisRateLimitStore.from_url(redis_url)
    return InMemoryRateLimitStore()


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Args:
        request: The incoming request

    Returns:
        First X-Forwarded-For entry, else the socket address, else "unknown"
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    return request.client.host if request.client else "unknown"


def add_rate_limit_headers(response: Response, decision: RateLimitDecision) -> None:
    """
    Add rate limit headers to response.

    Args:
        response: The response object
        decision: Rate limit decision for the request
    """
    response.headers["X-RateLimit-Limit"] = str(decision.limit)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)

    if not decision.allowed:
        response.headers["Retry-After"] = str(decision.retry_after)
