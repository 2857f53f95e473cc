"""
Token Revocation Port.

Records token ids that must be rejected before their natural expiry.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class RevocationStorePort(Protocol):
    """
    Port for the token revocation set.

    Entries only need to outlive the token they revoke, so each one
    carries a TTL equal to the token's remaining lifetime.
    """

    async def revoke(self, token_id: str, ttl_seconds: int) -> bool:
        """
        Mark ``token_id`` as revoked for ``ttl_seconds``.

        Returns:
            True if this call revoked it, False if it was already revoked.
        """
        ...

    async def is_revoked(self, token_id: str) -> bool:
        """Check whether ``token_id`` is currently revoked."""
        ...
