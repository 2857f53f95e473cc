"""
Factory functions for automatic service creation.

Implements the 'if not provided create' pattern: anything the host
application passes in is used as is, everything else is built from
``AuthConfig`` (itself read from ``AUTH_*`` environment variables when
not given).
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import redis.asyncio as redis

from saas_metrics_auth.application.authentication import AuthenticationFlow
from saas_metrics_auth.application.key_manager import KeyManager, KeyRotationTask
from saas_metrics_auth.application.tokens import TokenService
from saas_metrics_auth.config import AuthConfig
from saas_metrics_auth.domain.errors import ValidationError
from saas_metrics_auth.infrastructure.adapters.google import GoogleIdentityProvider
from saas_metrics_auth.infrastructure.adapters.rate_limit import (
    InMemoryRateLimiter,
    RedisRateLimiter,
)
from saas_metrics_auth.infrastructure.adapters.revocation import (
    InMemoryRevocationStore,
    RedisRevocationStore,
)
from saas_metrics_auth.infrastructure.adapters.roles import EmailDomainRoleResolver
from saas_metrics_auth.infrastructure.adapters.session import (
    InMemorySessionAdapter,
    RedisSessionAdapter,
)
from saas_metrics_auth.ports.authorization import RoleResolverPort
from saas_metrics_auth.ports.identity_provider import IdentityProviderPort
from saas_metrics_auth.ports.rate_limit import RateLimiterPort
from saas_metrics_auth.ports.revocation import RevocationStorePort
from saas_metrics_auth.ports.session import SessionStorePort

logger = logging.getLogger(__name__)


@dataclass
class AuthComponents:
    """Fully wired authentication core."""

    config: AuthConfig
    key_manager: KeyManager
    rotation_task: KeyRotationTask
    session_store: SessionStorePort
    revocation_store: RevocationStorePort
    login_rate_limiter: RateLimiterPort
    refresh_rate_limiter: RateLimiterPort
    token_service: TokenService
    authentication: AuthenticationFlow


def create_default_redis(config: AuthConfig) -> Any:
    """Create a ``redis.asyncio`` client for ``config.redis_url``."""
    return redis.Redis.from_url(config.redis_url)


def create_default_idp(config: AuthConfig) -> IdentityProviderPort:
    """Create the Google identity provider from configuration."""
    if config.google is None:
        raise ValidationError(
            "No identity provider configured; set AUTH_GOOGLE_CLIENT_ID "
            "or pass identity_provider"
        )
    return GoogleIdentityProvider(config.google, timeout=config.identity_timeout)


def create_key_manager(
    config: AuthConfig, clock: Callable[[], float] = time.time
) -> KeyManager:
    return KeyManager(
        initial_key=config.initial_key_bytes(),
        retention_period=config.key_retention_period,
        clock=clock,
    )


def create_session_store(
    config: AuthConfig,
    redis_client: Any = None,
    clock: Callable[[], float] = time.time,
) -> SessionStorePort:
    if config.backend == "redis":
        return RedisSessionAdapter(
            redis_client, timeout=config.store_timeout, clock=clock
        )
    return InMemorySessionAdapter(clock=clock)


def create_revocation_store(
    config: AuthConfig,
    redis_client: Any = None,
    clock: Callable[[], float] = time.time,
) -> RevocationStorePort:
    if config.backend == "redis":
        return RedisRevocationStore(redis_client, timeout=config.store_timeout)
    return InMemoryRevocationStore(clock=clock)


def create_rate_limiter(
    config: AuthConfig,
    scope: str,
    max_attempts: int,
    redis_client: Any = None,
    clock: Callable[[], float] = time.time,
) -> RateLimiterPort:
    if config.backend == "redis":
        return RedisRateLimiter(
            redis_client,
            max_attempts=max_attempts,
            window_seconds=config.rate_limit_window,
            scope=scope,
            timeout=config.store_timeout,
        )
    return InMemoryRateLimiter(
        max_attempts=max_attempts,
        window_seconds=config.rate_limit_window,
        scope=scope,
        clock=clock,
    )


def create_auth_components(
    config: Optional[AuthConfig] = None,
    redis_client: Any = None,
    identity_provider: Optional[IdentityProviderPort] = None,
    role_resolver: Optional[RoleResolverPort] = None,
    clock: Callable[[], float] = time.time,
) -> AuthComponents:
    """
    Build every component of the authentication core.

    Example:
        components = create_auth_components(identity_provider=my_idp)
        async with components.rotation_task:
            result = await components.authentication.sign_in(code, ip, fp)
    """
    if config is None:
        config = AuthConfig.from_env()
    else:
        config.validate()

    if config.backend == "redis" and redis_client is None:
        redis_client = create_default_redis(config)
    if identity_provider is None:
        identity_provider = create_default_idp(config)
    if role_resolver is None:
        role_resolver = EmailDomainRoleResolver()

    key_manager = create_key_manager(config, clock)
    sessions = create_session_store(config, redis_client, clock)
    revocations = create_revocation_store(config, redis_client, clock)
    login_limiter = create_rate_limiter(
        config, "login", config.login_max_attempts, redis_client, clock
    )
    refresh_limiter = create_rate_limiter(
        config, "refresh", config.refresh_max_attempts, redis_client, clock
    )

    token_service = TokenService(
        config=config,
        key_manager=key_manager,
        session_store=sessions,
        revocation_store=revocations,
        refresh_rate_limiter=refresh_limiter,
        clock=clock,
    )
    authentication = AuthenticationFlow(
        identity_provider=identity_provider,
        role_resolver=role_resolver,
        login_rate_limiter=login_limiter,
        token_service=token_service,
        session_store=sessions,
        identity_timeout=config.identity_timeout,
        fingerprint_prefix_length=config.fingerprint_prefix_length,
        clock=clock,
    )

    logger.debug(f"Created auth components with {config.backend} backend")
    return AuthComponents(
        config=config,
        key_manager=key_manager,
        rotation_task=KeyRotationTask(key_manager, config.key_rotation_interval),
        session_store=sessions,
        revocation_store=revocations,
        login_rate_limiter=login_limiter,
        refresh_rate_limiter=refresh_limiter,
        token_service=token_service,
        authentication=authentication,
    )
