"""
Identity Provider Port.

Defines the interface for exchanging an OAuth2 authorization code with an
external Identity Provider (Google, or any OpenID Connect provider).
"""

from typing import Protocol, runtime_checkable

from saas_metrics_auth.domain.value_objects import VerifiedIdentity


@runtime_checkable
class IdentityProviderPort(Protocol):
    """
    Port for delegating identity verification to an Identity Provider.

    Implementations handle the specifics of the token endpoint and of
    validating the returned ID token.
    """

    async def exchange_code(self, code: str) -> VerifiedIdentity:
        """
        Exchange an authorization code for a verified identity.

        Args:
            code: One-time OAuth2 authorization code

        Returns:
            VerifiedIdentity asserted by the provider

        Raises:
            InvalidAuthorizationCode: Code rejected or ID token invalid
            UpstreamTimeout: Provider did not answer in time
            UpstreamUnavailable: Provider unreachable or server error
        """
        ...
