"""Port interfaces (Protocols) for infrastructure adapters."""

from saas_metrics_auth.ports.rate_limit import RateLimiterPort
from saas_metrics_auth.ports.session import SessionStorePort
from saas_metrics_auth.ports.revocation import RevocationStorePort
from saas_metrics_auth.ports.identity_provider import IdentityProviderPort
from saas_metrics_auth.ports.authorization import RoleResolverPort

__all__ = [
    # Rate limiting
    "RateLimiterPort",
    # Session
    "SessionStorePort",
    # Revocation
    "RevocationStorePort",
    # Identity Provider
    "IdentityProviderPort",
    # Authorization
    "RoleResolverPort",
]
