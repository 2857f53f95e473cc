"""
Tests for the dependency-injector AuthContainer.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from dependency_injector import providers

from saas_metrics_auth.application.authentication import AuthenticationFlow
from saas_metrics_auth.contrib.dependency_injector import AuthContainer
from saas_metrics_auth.infrastructure.adapters.rate_limit import RedisRateLimiter
from saas_metrics_auth.infrastructure.adapters.session import (
    InMemorySessionAdapter,
    RedisSessionAdapter,
)

SETTINGS = {
    "jwt_secret": "a" * 40,
    "jwt_refresh_secret": "b" * 40,
    "key_rotation_interval": 3600,
}


@pytest.fixture
def container(mock_idp):
    container = AuthContainer()
    container.config.from_dict(dict(SETTINGS))
    container.identity_provider.override(providers.Object(mock_idp))
    yield container
    container.reset_singletons()


def rotation_tasks():
    return [t for t in asyncio.all_tasks() if t.get_name() == "key-rotation"]


def test_memory_backend_is_default(container):
    assert isinstance(container.session_store(), InMemorySessionAdapter)
    assert isinstance(container.authentication(), AuthenticationFlow)


def test_singletons_are_shared(container):
    flow = container.authentication()
    assert container.authentication() is flow
    assert container.token_service() is container.token_service()


def test_redis_backend(mock_idp):
    container = AuthContainer()
    container.config.from_dict(dict(SETTINGS, backend="redis"))
    container.redis_client.override(providers.Object(AsyncMock()))
    container.identity_provider.override(providers.Object(mock_idp))

    assert isinstance(container.session_store(), RedisSessionAdapter)
    limiter = container.login_rate_limiter()
    assert isinstance(limiter, RedisRateLimiter)
    assert limiter._max == 5
    assert limiter._scope == "login"


@pytest.mark.asyncio
async def test_resources_run_key_rotation(container):
    await container.init_resources()
    assert container.key_rotation.initialized
    assert len(rotation_tasks()) == 1

    await container.shutdown_resources()
    assert not container.key_rotation.initialized
    assert rotation_tasks() == []


@pytest.mark.asyncio
async def test_container_sign_in(container):
    flow = container.authentication()

    result = await flow.sign_in("code", "10.0.0.1", "fp-1")
    payload = await flow.verify(result.tokens.access_token)

    assert payload.email == "alice@example.com"
    assert len(await container.session_store().list_for_user("user-1")) == 1
