"""
Tests for AuthenticationFlow.
"""

import asyncio

import pytest

from saas_metrics_auth.domain.errors import (
    IdentityNotVerified,
    InvalidAuthorizationCode,
    RateLimitExceeded,
    SessionContextMismatch,
    SessionExpired,
    UpstreamTimeout,
    ValidationError,
)
from saas_metrics_auth.domain.value_objects import UserRole, VerifiedIdentity


@pytest.mark.asyncio
async def test_sign_in_returns_tokens(flow, mock_idp):
    result = await flow.sign_in("code-1", "10.0.0.1", "fp-1")

    assert result.user.id == "user-1"
    assert result.user.email == "alice@example.com"
    assert result.user.role is UserRole.PUBLIC
    assert result.user.last_login is not None
    assert result.tokens.access_token
    assert result.tokens.refresh_token
    mock_idp.exchange_code.assert_awaited_once_with("code-1")


@pytest.mark.asyncio
async def test_fourth_login_evicts_oldest_session(flow, sessions, clock):
    first = await flow.sign_in("code-1", "10.0.0.1", "fp-1")
    clock.advance(1)
    await flow.sign_in("code-2", "10.0.0.1", "fp-2")
    assert len(await sessions.list_for_user("user-1")) == 2

    clock.advance(1)
    await flow.sign_in("code-3", "10.0.0.1", "fp-3")
    clock.advance(1)
    await flow.sign_in("code-4", "10.0.0.1", "fp-4")

    live = await sessions.list_for_user("user-1")
    assert [s.device_fingerprint for s in live] == ["fp-2", "fp-3", "fp-4"]

    with pytest.raises(SessionExpired):
        await flow.verify(first.tokens.access_token)


@pytest.mark.asyncio
async def test_login_does_not_create_session(flow, sessions):
    user = await flow.login("code-1", "10.0.0.1", "fp-1")
    assert user.id == "user-1"
    assert await sessions.list_for_user("user-1") == []


@pytest.mark.asyncio
async def test_role_comes_from_email_domain(flow, mock_idp):
    mock_idp.exchange_code.return_value = VerifiedIdentity(
        email="root@superadmin.com", email_verified=True, subject_id="root"
    )
    user = await flow.login("code", "10.0.0.1", "fp")
    assert user.role is UserRole.SUPER_ADMIN


@pytest.mark.asyncio
async def test_unverified_email_is_rejected(flow, mock_idp, sessions):
    mock_idp.exchange_code.return_value = VerifiedIdentity(
        email="alice@example.com", email_verified=False, subject_id="user-1"
    )
    with pytest.raises(IdentityNotVerified):
        await flow.sign_in("code", "10.0.0.1", "fp")
    assert await sessions.list_for_user("user-1") == []


@pytest.mark.asyncio
async def test_invalid_code_propagates(flow, mock_idp):
    mock_idp.exchange_code.side_effect = InvalidAuthorizationCode()
    with pytest.raises(InvalidAuthorizationCode):
        await flow.login("used-code", "10.0.0.1", "fp")


@pytest.mark.asyncio
async def test_identity_timeout_leaves_no_session(flow, mock_idp, sessions):
    async def never_answers(code):
        await asyncio.sleep(10)

    mock_idp.exchange_code.side_effect = never_answers

    with pytest.raises(UpstreamTimeout) as exc:
        await flow.sign_in("code", "10.0.0.1", "fp")
    assert exc.value.retryable
    assert await sessions.list_for_user("user-1") == []


@pytest.mark.asyncio
async def test_login_rate_limit_per_ip(flow, clock):
    for _ in range(5):
        await flow.login("code", "10.0.0.1", "fp")

    with pytest.raises(RateLimitExceeded) as exc:
        await flow.login("code", "10.0.0.1", "fp")
    assert exc.value.retry_after > 0

    # Other addresses are unaffected
    await flow.login("code", "10.0.0.2", "fp")

    clock.advance(900)
    await flow.login("code", "10.0.0.1", "fp")


@pytest.mark.asyncio
async def test_rate_limit_checked_before_identity_provider(flow, mock_idp):
    for _ in range(5):
        await flow.login("code", "10.0.0.1", "fp")
    mock_idp.exchange_code.reset_mock()

    with pytest.raises(RateLimitExceeded):
        await flow.login("code", "10.0.0.1", "fp")
    mock_idp.exchange_code.assert_not_awaited()


@pytest.mark.parametrize(
    "code, ip, fingerprint",
    [
        ("", "10.0.0.1", "fp"),
        ("code", "", "fp"),
        ("code", "10.0.0.1", "  "),
        ("c" * 5000, "10.0.0.1", "fp"),
    ],
)
@pytest.mark.asyncio
async def test_login_validates_input(flow, mock_idp, code, ip, fingerprint):
    with pytest.raises(ValidationError):
        await flow.login(code, ip, fingerprint)
    mock_idp.exchange_code.assert_not_awaited()


@pytest.mark.asyncio
async def test_refresh_delegates_to_token_service(flow):
    result = await flow.sign_in("code", "10.0.0.1", "fp-1")
    new_tokens = await flow.refresh(result.tokens.refresh_token, "10.0.0.1")
    payload = await flow.verify(new_tokens.access_token)
    assert payload.user_id == "user-1"


# -----------------------------------------------------------------------------
# LOGOUT
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_logout_ends_session(flow, sessions):
    result = await flow.sign_in("code", "10.0.0.1", "fp-1")
    payload = await flow.verify(result.tokens.access_token)

    deleted = await flow.logout(payload.session_id, "user-1")

    assert deleted == [payload.session_id]
    assert await sessions.get(payload.session_id) is None
    with pytest.raises(SessionExpired):
        await flow.verify(result.tokens.access_token)


@pytest.mark.asyncio
async def test_logout_is_idempotent(flow):
    result = await flow.sign_in("code", "10.0.0.1", "fp-1")
    payload = await flow.verify(result.tokens.access_token)

    await flow.logout(payload.session_id, "user-1")
    assert await flow.logout(payload.session_id, "user-1") == []


@pytest.mark.asyncio
async def test_logout_of_foreign_session_is_rejected(flow, sessions):
    result = await flow.sign_in("code", "10.0.0.1", "fp-1")
    payload = await flow.verify(result.tokens.access_token)

    with pytest.raises(SessionContextMismatch):
        await flow.logout(payload.session_id, "someone-else")
    assert await sessions.get(payload.session_id) is not None


@pytest.mark.asyncio
async def test_logout_terminates_related_sessions(flow, sessions, clock):
    device = "chrome-macos-1234"
    a = await flow.sign_in("code", "10.0.0.1", device + "-tab-a")
    clock.advance(1)
    await flow.sign_in("code", "10.0.0.1", device + "-tab-b")
    clock.advance(1)
    other = await flow.sign_in("code", "10.0.0.1", "firefox-linux-99999-x")

    payload = await flow.verify(a.tokens.access_token)
    deleted = await flow.logout(payload.session_id, "user-1", terminate_related=True)

    assert len(deleted) == 2
    live = await sessions.list_for_user("user-1")
    assert [s.device_fingerprint for s in live] == ["firefox-linux-99999-x"]
    assert await flow.verify(other.tokens.access_token)
