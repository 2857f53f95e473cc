"""
Rate Limiter Adapter Implementations.

Provides fixed-window backends for RateLimiterPort:
- InMemoryRateLimiter: For development/testing
- RedisRateLimiter: For production (shared by every instance)

A burst of up to twice the limit across a window boundary is possible
with fixed windows and is accepted.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict

from saas_metrics_auth.audit import log_security_event
from saas_metrics_auth.domain.errors import RateLimitExceeded, ValidationError
from saas_metrics_auth.infrastructure.adapters.redis_support import (
    DEFAULT_STORE_TIMEOUT,
    call_store,
)
from saas_metrics_auth.ports.rate_limit import RateLimiterPort

logger = logging.getLogger(__name__)


def _check_settings(max_attempts: int, window_seconds: int) -> None:
    if max_attempts <= 0 or window_seconds <= 0:
        raise ValidationError("Rate limit settings must be positive")


def _exceeded(
    identity: str, scope: str, count: int, retry_after: int
) -> RateLimitExceeded:
    log_security_event(
        "rate_limit_exceeded",
        level=logging.WARNING,
        identity=identity,
        scope=scope,
        attempts=count,
        retry_after=retry_after,
    )
    return RateLimitExceeded(
        details={"identity": identity, "scope": scope}, retry_after=retry_after
    )


# ═══════════════════════════════════════════════════════════════
# IN-MEMORY ADAPTER (Development/Testing)
# ═══════════════════════════════════════════════════════════════


@dataclass
class _Counter:
    count: int
    window_expires_at: float


class InMemoryRateLimiter(RateLimiterPort):
    """
    In-memory implementation of RateLimiterPort.

    Counters live in this process only. ``clock`` returns epoch seconds
    and can be replaced in tests.

    Usage:
        limiter = InMemoryRateLimiter(max_attempts=5, window_seconds=900)
        await limiter.consume("10.0.0.1")
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: int = 900,
        scope: str = "login",
        clock: Callable[[], float] = time.time,
    ):
        _check_settings(max_attempts, window_seconds)
        self._max = max_attempts
        self._window = window_seconds
        self._scope = scope
        self._clock = clock
        self._counters: Dict[str, _Counter] = {}

    def _purge(self, now: float) -> None:
        expired = [k for k, c in self._counters.items() if now >= c.window_expires_at]
        for key in expired:
            del self._counters[key]

    async def consume(self, identity: str) -> int:
        now = self._clock()
        self._purge(now)
        counter = self._counters.get(identity)
        if counter is None or now >= counter.window_expires_at:
            counter = _Counter(count=0, window_expires_at=now + self._window)
            self._counters[identity] = counter
        counter.count += 1

        if counter.count > self._max:
            retry_after = max(1, int(counter.window_expires_at - now))
            raise _exceeded(identity, self._scope, counter.count, retry_after)
        return counter.count

    async def reset(self, identity: str) -> None:
        self._counters.pop(identity, None)

    def clear(self) -> None:
        """Clear all counters (for testing)."""
        self._counters.clear()


# ═══════════════════════════════════════════════════════════════
# REDIS ADAPTER (Production - Distributed)
# ═══════════════════════════════════════════════════════════════


class RedisRateLimiter(RateLimiterPort):
    """
    Redis implementation of RateLimiterPort.

    Increment, first-write expiry and TTL lookup run as one Lua script,
    so concurrent instances never lose an increment or leave a counter
    without expiry.

    Usage:
        import redis.asyncio as redis

        client = redis.Redis.from_url("redis://localhost:6379")
        limiter = RedisRateLimiter(client, max_attempts=5, window_seconds=900)
    """

    CONSUME_SCRIPT = """
    local current = redis.call('INCR', KEYS[1])
    if current == 1 then
        redis.call('EXPIRE', KEYS[1], tonumber(ARGV[1]))
    end
    local ttl = redis.call('TTL', KEYS[1])
    if ttl < 0 then
        redis.call('EXPIRE', KEYS[1], tonumber(ARGV[1]))
        ttl = tonumber(ARGV[1])
    end
    return {current, ttl}
    """

    def __init__(
        self,
        redis_client: Any,  # redis.asyncio.Redis
        max_attempts: int = 5,
        window_seconds: int = 900,
        scope: str = "login",
        prefix: str = "auth:rate_limit:",
        timeout: float = DEFAULT_STORE_TIMEOUT,
    ):
        _check_settings(max_attempts, window_seconds)
        self._redis = redis_client
        self._max = max_attempts
        self._window = window_seconds
        self._scope = scope
        self._prefix = prefix
        self._timeout = timeout

    def _key(self, identity: str) -> str:
        return f"{self._prefix}{self._scope}:{identity}"

    async def consume(self, identity: str) -> int:
        result = await call_store(
            self._redis.eval(self.CONSUME_SCRIPT, 1, self._key(identity), self._window),
            "rate_limit.consume",
            self._timeout,
        )
        count, ttl = int(result[0]), int(result[1])
        logger.debug(f"Rate limit {self._scope} for {identity}: {count}/{self._max}")

        if count > self._max:
            raise _exceeded(identity, self._scope, count, max(1, ttl))
        return count

    async def reset(self, identity: str) -> None:
        await call_store(
            self._redis.delete(self._key(identity)), "rate_limit.reset", self._timeout
        )
