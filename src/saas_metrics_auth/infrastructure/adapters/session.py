"""
Session Adapter Implementations.

Provides various backends for SessionStorePort:
- InMemorySessionAdapter: For development/testing
- RedisSessionAdapter: For production (distributed, fast)

Both keep a per-user index ordered by issue time, which is what the
oldest-first eviction walks.
"""

import itertools
import json
import logging
import time
from typing import Any, Callable, Dict, Optional

from saas_metrics_auth.audit import log_security_event, redact_id
from saas_metrics_auth.domain.errors import ValidationError
from saas_metrics_auth.domain.value_objects import Session
from saas_metrics_auth.infrastructure.adapters.redis_support import (
    DEFAULT_STORE_TIMEOUT,
    call_store,
    decode,
)
from saas_metrics_auth.ports.session import SessionStorePort

logger = logging.getLogger(__name__)


def _check_ttl(ttl_seconds: int) -> None:
    if ttl_seconds <= 0:
        raise ValidationError("Session TTL must be positive")


def _log_evictions(user_id: str, evicted: list[str]) -> None:
    if evicted:
        log_security_event(
            "sessions_evicted",
            user_id=user_id,
            evicted=[redact_id(sid) for sid in evicted],
        )


# ═══════════════════════════════════════════════════════════════
# IN-MEMORY ADAPTER (Development/Testing)
# ═══════════════════════════════════════════════════════════════


class InMemorySessionAdapter(SessionStorePort):
    """
    In-memory implementation of SessionStorePort.

    Suitable for development and testing. Not for production
    as sessions are lost on restart and not distributed. Expiry is
    emulated against ``clock`` so tests can move time forward.

    Usage:
        adapter = InMemorySessionAdapter()
        await adapter.create(session, ttl_seconds=604800)
        evicted = await adapter.enforce_limit(session.user_id, 3)
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        # session_id -> (session, store expiry, insertion order)
        self._sessions: Dict[str, tuple[Session, float, int]] = {}
        self._sequence = itertools.count()

    def _live(self, session_id: str) -> Optional[tuple[Session, float, int]]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        if self._clock() >= entry[1]:
            del self._sessions[session_id]
            return None
        return entry

    def _user_entries(self, user_id: str) -> list[tuple[Session, float, int]]:
        entries = []
        for session_id in list(self._sessions):
            entry = self._live(session_id)
            if entry is not None and entry[0].user_id == user_id:
                entries.append(entry)
        entries.sort(key=lambda e: (e[0].issued_at, e[2]))
        return entries

    async def create(self, session: Session, ttl_seconds: int) -> None:
        _check_ttl(ttl_seconds)
        self._sessions[session.session_id] = (
            session,
            self._clock() + ttl_seconds,
            next(self._sequence),
        )
        logger.debug(f"Created session: {session.session_id}")

    async def get(self, session_id: str) -> Optional[Session]:
        entry = self._live(session_id)
        return entry[0] if entry else None

    async def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        logger.debug(f"Deleted session: {session_id}")

    async def list_for_user(self, user_id: str) -> list[Session]:
        return [entry[0] for entry in self._user_entries(user_id)]

    async def enforce_limit(self, user_id: str, max_sessions: int) -> list[str]:
        if max_sessions <= 0:
            raise ValidationError("max_sessions must be positive")
        entries = self._user_entries(user_id)
        evicted = []
        while len(entries) >= max_sessions:
            oldest = entries.pop(0)[0]
            self._sessions.pop(oldest.session_id, None)
            evicted.append(oldest.session_id)
        _log_evictions(user_id, evicted)
        return evicted

    def clear(self) -> None:
        """Clear all sessions (for testing)."""
        self._sessions.clear()


# ═══════════════════════════════════════════════════════════════
# REDIS ADAPTER (Production - Distributed)
# ═══════════════════════════════════════════════════════════════


class RedisSessionAdapter(SessionStorePort):
    """
    Redis implementation of SessionStorePort.

    Production-ready, distributed session storage with automatic
    expiration via Redis TTL. Records are ``Session.to_dict()`` JSON under
    ``auth:session:{id}``; each user has a sorted set
    ``auth:user_sessions:{user_id}`` scored by issue time.

    Requires: redis

    Usage:
        import redis.asyncio as redis

        client = redis.Redis.from_url("redis://localhost:6379")
        adapter = RedisSessionAdapter(client)
    """

    # Drops index members whose record already expired, then pops the
    # oldest while the user is at or above the limit.
    ENFORCE_LIMIT_SCRIPT = """
    local index = KEYS[1]
    local prefix = ARGV[2]
    local limit = tonumber(ARGV[1])
    local members = redis.call('ZRANGE', index, 0, -1)
    for _, sid in ipairs(members) do
        if redis.call('EXISTS', prefix .. sid) == 0 then
            redis.call('ZREM', index, sid)
        end
    end
    local evicted = {}
    while redis.call('ZCARD', index) >= limit do
        local oldest = redis.call('ZPOPMIN', index)
        if #oldest == 0 then
            break
        end
        redis.call('DEL', prefix .. oldest[1])
        table.insert(evicted, oldest[1])
    end
    return evicted
    """

    def __init__(
        self,
        redis_client: Any,  # redis.asyncio.Redis
        prefix: str = "auth:session:",
        user_sessions_prefix: str = "auth:user_sessions:",
        timeout: float = DEFAULT_STORE_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self._redis = redis_client
        self._prefix = prefix
        self._user_prefix = user_sessions_prefix
        self._timeout = timeout
        self._clock = clock

    def _session_key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    def _user_key(self, user_id: str) -> str:
        return f"{self._user_prefix}{user_id}"

    def _load(self, session_id: str, data: Any) -> Optional[Session]:
        try:
            return Session.from_dict(json.loads(decode(data)))
        except (ValueError, KeyError, TypeError, AttributeError, ValidationError) as e:
            logger.warning(
                f"Unreadable session record {self._session_key(session_id)}: {e!r}"
            )
            return None

    async def create(self, session: Session, ttl_seconds: int) -> None:
        _check_ttl(ttl_seconds)
        # Sub-second score keeps logins within the same second in order
        score = max(float(session.issued_at), self._clock())

        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(
                self._session_key(session.session_id),
                json.dumps(session.to_dict()),
                ex=ttl_seconds,
            )
            pipe.zadd(self._user_key(session.user_id), {session.session_id: score})
            pipe.expire(self._user_key(session.user_id), ttl_seconds)
            await call_store(pipe.execute(), "session.create", self._timeout)

        logger.debug(f"Created Redis session: {session.session_id}")

    async def get(self, session_id: str) -> Optional[Session]:
        data = await call_store(
            self._redis.get(self._session_key(session_id)),
            "session.get",
            self._timeout,
        )
        if data is None:
            return None
        session = self._load(session_id, data)
        if session is None or session.is_expired(self._clock()):
            await self.delete(session_id)
            return None
        return session

    async def delete(self, session_id: str) -> None:
        data = await call_store(
            self._redis.get(self._session_key(session_id)),
            "session.get",
            self._timeout,
        )
        session = self._load(session_id, data) if data is not None else None
        if session is not None and session.user_id:
            await call_store(
                self._redis.zrem(self._user_key(session.user_id), session_id),
                "session.unindex",
                self._timeout,
            )

        await call_store(
            self._redis.delete(self._session_key(session_id)),
            "session.delete",
            self._timeout,
        )
        logger.debug(f"Deleted Redis session: {session_id}")

    async def list_for_user(self, user_id: str) -> list[Session]:
        session_ids = await call_store(
            self._redis.zrange(self._user_key(user_id), 0, -1),
            "session.list",
            self._timeout,
        )
        results = []
        for sid in session_ids:
            session = await self.get(decode(sid))
            if session:
                results.append(session)
        return results

    async def enforce_limit(self, user_id: str, max_sessions: int) -> list[str]:
        if max_sessions <= 0:
            raise ValidationError("max_sessions must be positive")
        evicted = await call_store(
            self._redis.eval(
                self.ENFORCE_LIMIT_SCRIPT,
                1,
                self._user_key(user_id),
                max_sessions,
                self._prefix,
            ),
            "session.enforce_limit",
            self._timeout,
        )
        evicted = [decode(sid) for sid in evicted or []]
        _log_evictions(user_id, evicted)
        return evicted
