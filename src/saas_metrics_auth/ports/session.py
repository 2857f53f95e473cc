"""
Session Store Port.

Defines the port interface for persisting device/browser sessions
and bounding how many of them a user may hold at once.
"""

from typing import Protocol, Optional, runtime_checkable

from saas_metrics_auth.domain.value_objects import Session


@runtime_checkable
class SessionStorePort(Protocol):
    """
    Port for session storage.

    This abstraction allows different storage backends:
    - InMemorySessionAdapter: For development/testing
    - RedisSessionAdapter: For production (fast, distributed)

    A session is owned by the store. Other components keep only the
    ``session_id`` and ask the store whether it is still live.
    """

    async def create(self, session: Session, ttl_seconds: int) -> None:
        """
        Persist a new session that expires after ``ttl_seconds``.

        Raises:
            StoreUnavailable: When the store cannot be reached.
            UpstreamTimeout: When the store did not answer in time.
        """
        ...

    async def get(self, session_id: str) -> Optional[Session]:
        """
        Get session by ID.

        Returns:
            Session if found and not expired, None otherwise
        """
        ...

    async def delete(self, session_id: str) -> None:
        """Delete a session. Deleting an unknown session is a no-op."""
        ...

    async def list_for_user(self, user_id: str) -> list[Session]:
        """Live sessions of a user, oldest first."""
        ...

    async def enforce_limit(self, user_id: str, max_sessions: int) -> list[str]:
        """
        Evict the oldest sessions until fewer than ``max_sessions`` remain.

        Returns:
            The evicted session ids, oldest first.
        """
        ...
