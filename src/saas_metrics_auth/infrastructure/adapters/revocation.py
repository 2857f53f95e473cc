"""
Token Revocation Adapter Implementations.

- InMemoryRevocationStore: For development/testing
- RedisRevocationStore: For production (shared by every instance)
"""

import logging
import time
from typing import Any, Callable, Dict

from saas_metrics_auth.infrastructure.adapters.redis_support import (
    DEFAULT_STORE_TIMEOUT,
    call_store,
)
from saas_metrics_auth.ports.revocation import RevocationStorePort

logger = logging.getLogger(__name__)


class InMemoryRevocationStore(RevocationStorePort):
    """In-memory revocation set with clock-based expiry."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._revoked: Dict[str, float] = {}

    def _purge(self, now: float) -> None:
        expired = [k for k, expires_at in self._revoked.items() if now >= expires_at]
        for token_id in expired:
            del self._revoked[token_id]

    async def revoke(self, token_id: str, ttl_seconds: int) -> bool:
        now = self._clock()
        self._purge(now)
        if token_id in self._revoked:
            return False
        self._revoked[token_id] = now + max(1, ttl_seconds)
        logger.debug(f"Revoked token: {token_id}")
        return True

    async def is_revoked(self, token_id: str) -> bool:
        expires_at = self._revoked.get(token_id)
        if expires_at is None:
            return False
        if self._clock() >= expires_at:
            del self._revoked[token_id]
            return False
        return True

    def clear(self) -> None:
        """Clear all entries (for testing)."""
        self._revoked.clear()


class RedisRevocationStore(RevocationStorePort):
    """
    Redis implementation of RevocationStorePort.

    One key per revoked token id, expiring with the token itself.

    Usage:
        store = RedisRevocationStore(redis_client)
        await store.revoke(token_id, ttl_seconds=600)
    """

    def __init__(
        self,
        redis_client: Any,  # redis.asyncio.Redis
        prefix: str = "auth:revoked:",
        timeout: float = DEFAULT_STORE_TIMEOUT,
    ):
        self._redis = redis_client
        self._prefix = prefix
        self._timeout = timeout

    def _key(self, token_id: str) -> str:
        return f"{self._prefix}{token_id}"

    async def revoke(self, token_id: str, ttl_seconds: int) -> bool:
        created = await call_store(
            self._redis.set(
                self._key(token_id), "1", ex=max(1, ttl_seconds), nx=True
            ),
            "revocation.revoke",
            self._timeout,
        )
        logger.debug(f"Revoked token in Redis: {token_id}")
        return bool(created)

    async def is_revoked(self, token_id: str) -> bool:
        exists = await call_store(
            self._redis.exists(self._key(token_id)),
            "revocation.check",
            self._timeout,
        )
        return bool(exists)
