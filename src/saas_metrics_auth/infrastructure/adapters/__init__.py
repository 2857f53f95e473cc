"""Concrete infrastructure adapters (sessions, rate limits, revocation, Google, roles)."""

from saas_metrics_auth.infrastructure.adapters.rate_limit import (
    InMemoryRateLimiter,
    RedisRateLimiter,
)
from saas_metrics_auth.infrastructure.adapters.session import (
    InMemorySessionAdapter,
    RedisSessionAdapter,
)
from saas_metrics_auth.infrastructure.adapters.revocation import (
    InMemoryRevocationStore,
    RedisRevocationStore,
)
from saas_metrics_auth.infrastructure.adapters.roles import (
    EmailDomainRoleResolver,
    StaticRoleResolver,
)
from saas_metrics_auth.infrastructure.adapters.google import GoogleIdentityProvider

__all__ = [
    # Rate limiting
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    # Sessions
    "InMemorySessionAdapter",
    "RedisSessionAdapter",
    # Revocation
    "InMemoryRevocationStore",
    "RedisRevocationStore",
    # Roles
    "EmailDomainRoleResolver",
    "StaticRoleResolver",
    # Identity provider
    "GoogleIdentityProvider",
]
