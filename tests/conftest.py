"""
Pytest configuration for saas-metrics-auth tests.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from saas_metrics_auth.application.authentication import AuthenticationFlow
from saas_metrics_auth.application.key_manager import KeyManager
from saas_metrics_auth.application.tokens import TokenService
from saas_metrics_auth.config import AuthConfig
from saas_metrics_auth.domain.value_objects import (
    AuthenticatedUser,
    SessionContext,
    UserRole,
    VerifiedIdentity,
)
from saas_metrics_auth.infrastructure.adapters.rate_limit import InMemoryRateLimiter
from saas_metrics_auth.infrastructure.adapters.revocation import (
    InMemoryRevocationStore,
)
from saas_metrics_auth.infrastructure.adapters.roles import EmailDomainRoleResolver
from saas_metrics_auth.infrastructure.adapters.session import InMemorySessionAdapter
from saas_metrics_auth.ports.identity_provider import IdentityProviderPort

ACCESS_SECRET = "a" * 32 + "-access-secret"
REFRESH_SECRET = "r" * 32 + "-refresh-secret"


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return AuthConfig(jwt_secret=ACCESS_SECRET, jwt_refresh_secret=REFRESH_SECRET)


@pytest.fixture
def key_manager(clock):
    return KeyManager(clock=clock)


@pytest.fixture
def sessions(clock):
    return InMemorySessionAdapter(clock=clock)


@pytest.fixture
def revocations(clock):
    return InMemoryRevocationStore(clock=clock)


@pytest.fixture
def login_limiter(clock):
    return InMemoryRateLimiter(max_attempts=5, window_seconds=900, clock=clock)


@pytest.fixture
def refresh_limiter(clock):
    return InMemoryRateLimiter(
        max_attempts=20, window_seconds=900, scope="refresh", clock=clock
    )


@pytest.fixture
def token_service(config, key_manager, sessions, revocations, refresh_limiter, clock):
    return TokenService(
        config=config,
        key_manager=key_manager,
        session_store=sessions,
        revocation_store=revocations,
        refresh_rate_limiter=refresh_limiter,
        clock=clock,
    )


@pytest.fixture
def user():
    return AuthenticatedUser(id="user-1", email="alice@example.com", role=UserRole.PUBLIC)


@pytest.fixture
def context():
    return SessionContext(ip_address="10.0.0.1", fingerprint="fp-1")


# -----------------------------------------------------------------------------
# MOCKS
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_idp():
    mock = MagicMock(spec=IdentityProviderPort)
    mock.exchange_code = AsyncMock(
        return_value=VerifiedIdentity(
            email="alice@example.com", email_verified=True, subject_id="user-1"
        )
    )
    return mock


@pytest.fixture
def flow(mock_idp, login_limiter, token_service, sessions, clock):
    return AuthenticationFlow(
        identity_provider=mock_idp,
        role_resolver=EmailDomainRoleResolver(),
        login_rate_limiter=login_limiter,
        token_service=token_service,
        session_store=sessions,
        identity_timeout=0.5,
        clock=clock,
    )
