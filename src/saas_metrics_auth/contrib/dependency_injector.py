"""
Dependency Injector integration for saas-metrics-auth.

Provides an optional IoC Container with pre-configured auth services.
Host applications can extend this container or use it directly.

Usage:
    from saas_metrics_auth.contrib.dependency_injector import AuthContainer

    class AppContainer(AuthContainer):
        # Provide implementations for required dependencies
        identity_provider = providers.Singleton(MyIdentityProvider, ...)
"""

import time
from typing import AsyncIterator

from dependency_injector import containers, providers

from saas_metrics_auth.application.authentication import AuthenticationFlow
from saas_metrics_auth.application.key_manager import KeyManager, KeyRotationTask
from saas_metrics_auth.application.tokens import TokenService
from saas_metrics_auth.config import AuthConfig
from saas_metrics_auth.factory import (
    create_default_idp,
    create_default_redis,
    create_key_manager,
)
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


def _backend(settings: AuthConfig) -> str:
    return settings.backend


async def init_key_rotation(
    key_manager: KeyManager, interval: int
) -> AsyncIterator[KeyRotationTask]:
    """Resource initializer: rotation runs between init and shutdown."""
    task = KeyRotationTask(key_manager, interval)
    task.start()
    try:
        yield task
    finally:
        await task.stop()


class AuthContainer(containers.DeclarativeContainer):
    """
    IoC Container for authentication services.

    External dependencies (can be overridden by host app):

    Required:
    - identity_provider: IdentityProviderPort implementation
      (default: GoogleIdentityProvider built from config.google)

    Optional:
    - role_resolver: RoleResolverPort implementation (default: EmailDomainRoleResolver)
    - redis_client: redis.asyncio client (default: created from config.redis_url)
    - clock: epoch-seconds callable (default: time.time)

    Config keys mirror ``AuthConfig`` fields (``jwt_secret``,
    ``jwt_refresh_secret``, ``backend``, ``google.client_id``, ...).

    Usage:
        container = AuthContainer()
        container.config.from_dict({
            "jwt_secret": "...",
            "jwt_refresh_secret": "...",
            "backend": "redis",
            "google": {"client_id": "...", "client_secret": "...", "redirect_uri": "..."},
        })

        await container.init_resources()  # starts key rotation
        flow = container.authentication()
        ...
        await container.shutdown_resources()
    """

    config = providers.Configuration()

    settings = providers.Singleton(AuthConfig.from_dict, config)

    clock = providers.Object(time.time)

    # ═══════════════════════════════════════════════════════════════
    # DEFAULT ADAPTERS (can be overridden)
    # ═══════════════════════════════════════════════════════════════

    redis_client = providers.Singleton(create_default_redis, settings)

    identity_provider = providers.Singleton(create_default_idp, settings)

    role_resolver = providers.Singleton(EmailDomainRoleResolver)

    session_store = providers.Selector(
        providers.Callable(_backend, settings),
        memory=providers.Singleton(InMemorySessionAdapter, clock=clock),
        redis=providers.Singleton(
            RedisSessionAdapter,
            redis_client,
            timeout=settings.provided.store_timeout,
            clock=clock,
        ),
    )

    revocation_store = providers.Selector(
        providers.Callable(_backend, settings),
        memory=providers.Singleton(InMemoryRevocationStore, clock=clock),
        redis=providers.Singleton(
            RedisRevocationStore,
            redis_client,
            timeout=settings.provided.store_timeout,
        ),
    )

    login_rate_limiter = providers.Selector(
        providers.Callable(_backend, settings),
        memory=providers.Singleton(
            InMemoryRateLimiter,
            max_attempts=settings.provided.login_max_attempts,
            window_seconds=settings.provided.rate_limit_window,
            scope="login",
            clock=clock,
        ),
        redis=providers.Singleton(
            RedisRateLimiter,
            redis_client,
            max_attempts=settings.provided.login_max_attempts,
            window_seconds=settings.provided.rate_limit_window,
            scope="login",
            timeout=settings.provided.store_timeout,
        ),
    )

    refresh_rate_limiter = providers.Selector(
        providers.Callable(_backend, settings),
        memory=providers.Singleton(
            InMemoryRateLimiter,
            max_attempts=settings.provided.refresh_max_attempts,
            window_seconds=settings.provided.rate_limit_window,
            scope="refresh",
            clock=clock,
        ),
        redis=providers.Singleton(
            RedisRateLimiter,
            redis_client,
            max_attempts=settings.provided.refresh_max_attempts,
            window_seconds=settings.provided.rate_limit_window,
            scope="refresh",
            timeout=settings.provided.store_timeout,
        ),
    )

    # ═══════════════════════════════════════════════════════════════
    # SERVICES
    # ═══════════════════════════════════════════════════════════════

    key_manager = providers.Singleton(create_key_manager, settings, clock)

    key_rotation = providers.Resource(
        init_key_rotation,
        key_manager,
        settings.provided.key_rotation_interval,
    )

    token_service = providers.Singleton(
        TokenService,
        config=settings,
        key_manager=key_manager,
        session_store=session_store,
        revocation_store=revocation_store,
        refresh_rate_limiter=refresh_rate_limiter,
        clock=clock,
    )

    authentication = providers.Singleton(
        AuthenticationFlow,
        identity_provider=identity_provider,
        role_resolver=role_resolver,
        login_rate_limiter=login_rate_limiter,
        token_service=token_service,
        session_store=session_store,
        identity_timeout=settings.provided.identity_timeout,
        fingerprint_prefix_length=settings.provided.fingerprint_prefix_length,
        clock=clock,
    )
