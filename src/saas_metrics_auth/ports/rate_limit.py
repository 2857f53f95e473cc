"""
Rate Limiter Port.

Counts authentication attempts per identity (usually the client IP)
in fixed windows.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class RateLimiterPort(Protocol):
    """
    Port for fixed-window attempt counting.

    Implementations:
    - InMemoryRateLimiter: For development/testing
    - RedisRateLimiter: For production (shared across instances)
    """

    async def consume(self, identity: str) -> int:
        """
        Record one attempt for ``identity``.

        Returns:
            The attempt count within the current window (1-based).

        Raises:
            RateLimitExceeded: When the count exceeds the configured maximum.
            StoreUnavailable: When the backing store cannot be reached.
        """
        ...

    async def reset(self, identity: str) -> None:
        """Forget the counter for ``identity``."""
        ...
