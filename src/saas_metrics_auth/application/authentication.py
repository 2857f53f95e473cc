"""
OAuth2 sign-in and logout.

``login`` turns an authorization code into an AuthenticatedUser and
never creates a session; ``sign_in`` adds the token pair on top. Sessions
exist only once the identity provider has confirmed the user.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from saas_metrics_auth.application.tokens import TokenService
from saas_metrics_auth.audit import log_security_event, redact_id
from saas_metrics_auth.domain.errors import (
    AuthDomainError,
    IdentityNotVerified,
    SessionContextMismatch,
    UpstreamTimeout,
    ValidationError,
)
from saas_metrics_auth.domain.value_objects import (
    AuthenticatedUser,
    SessionContext,
    TokenPair,
    TokenPayload,
)
from saas_metrics_auth.ports.authorization import RoleResolverPort
from saas_metrics_auth.ports.identity_provider import IdentityProviderPort
from saas_metrics_auth.ports.rate_limit import RateLimiterPort
from saas_metrics_auth.ports.session import SessionStorePort

logger = logging.getLogger(__name__)

MAX_CODE_LENGTH = 2048
MAX_FINGERPRINT_LENGTH = 512


@dataclass(frozen=True)
class SignInResult:
    """Outcome of a complete sign-in."""

    user: AuthenticatedUser
    tokens: TokenPair


def _require(value: str, name: str, max_length: int = 256) -> None:
    if not value or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required", details={"field": name})
    if len(value) > max_length:
        raise ValidationError(f"{name} is too long", details={"field": name})


class AuthenticationFlow:
    """
    Orchestrates login against the identity provider and logout.

    Usage:
        flow = AuthenticationFlow(
            identity_provider=GoogleIdentityProvider(google_config),
            role_resolver=EmailDomainRoleResolver(),
            login_rate_limiter=InMemoryRateLimiter(max_attempts=5),
            token_service=token_service,
            session_store=sessions,
        )
        result = await flow.sign_in(code, "10.0.0.1", "fp-1")
    """

    def __init__(
        self,
        identity_provider: IdentityProviderPort,
        role_resolver: RoleResolverPort,
        login_rate_limiter: RateLimiterPort,
        token_service: TokenService,
        session_store: SessionStorePort,
        identity_timeout: float = 10.0,
        fingerprint_prefix_length: int = 16,
        clock: Callable[[], float] = time.time,
    ):
        self._idp = identity_provider
        self._roles = role_resolver
        self._login_limiter = login_rate_limiter
        self._tokens = token_service
        self._sessions = session_store
        self._identity_timeout = identity_timeout
        self._prefix_length = fingerprint_prefix_length
        self._clock = clock

    async def login(
        self, oauth_code: str, ip_address: str, fingerprint: str
    ) -> AuthenticatedUser:
        """
        Verify the user behind ``oauth_code``.

        Raises:
            ValidationError: Missing or oversized input.
            RateLimitExceeded: Too many attempts from ``ip_address``.
            UpstreamTimeout: The identity provider did not answer in time.
            InvalidAuthorizationCode: The provider rejected the code.
            IdentityNotVerified: The provider reports an unverified email.
        """
        _require(oauth_code, "oauth_code", MAX_CODE_LENGTH)
        _require(ip_address, "ip_address")
        _require(fingerprint, "fingerprint", MAX_FINGERPRINT_LENGTH)

        await self._login_limiter.consume(ip_address)

        try:
            identity = await asyncio.wait_for(
                self._idp.exchange_code(oauth_code), timeout=self._identity_timeout
            )
        except asyncio.TimeoutError:
            log_security_event(
                "login_failed",
                level=logging.WARNING,
                ip_address=ip_address,
                reason="UPSTREAM_TIMEOUT",
            )
            raise UpstreamTimeout("Identity provider did not answer in time")
        except AuthDomainError as e:
            log_security_event(
                "login_failed",
                level=logging.WARNING,
                ip_address=ip_address,
                reason=e.code,
            )
            raise

        if not identity.email_verified:
            log_security_event(
                "login_failed",
                level=logging.WARNING,
                ip_address=ip_address,
                reason="IDENTITY_NOT_VERIFIED",
            )
            raise IdentityNotVerified(details={"email": identity.email})

        role = await self._roles.resolve_role(identity)
        user = AuthenticatedUser(
            id=identity.subject_id or identity.email,
            email=identity.email,
            role=role,
            last_login=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
        )
        log_security_event(
            "login_succeeded",
            user_id=user.id,
            role=role.value,
            ip_address=ip_address,
        )
        return user

    async def sign_in(
        self, oauth_code: str, ip_address: str, fingerprint: str
    ) -> SignInResult:
        """Login and issue a token pair bound to a new session."""
        user = await self.login(oauth_code, ip_address, fingerprint)
        tokens = await self._tokens.generate_tokens(
            user, SessionContext(ip_address=ip_address, fingerprint=fingerprint)
        )
        return SignInResult(user=user, tokens=tokens)

    async def refresh(self, encrypted_refresh_token: str, ip_address: str) -> TokenPair:
        return await self._tokens.refresh(encrypted_refresh_token, ip_address)

    async def verify(
        self, access_token: str, ip_address: Optional[str] = None
    ) -> TokenPayload:
        return await self._tokens.verify_access_token(access_token, ip_address)

    async def logout(
        self, session_id: str, user_id: str, terminate_related: bool = False
    ) -> list[str]:
        """
        End a session. Logging out twice is not an error.

        With ``terminate_related`` the user's other sessions from the same
        device family (same fingerprint prefix) end as well.

        Returns:
            The ids of the sessions that were deleted.
        """
        _require(session_id, "session_id")
        _require(user_id, "user_id")

        session = await self._sessions.get(session_id)
        if session is None:
            logger.debug(f"Logout for unknown session: {session_id}")
            return []
        if session.user_id != user_id:
            log_security_event(
                "logout_owner_mismatch",
                level=logging.WARNING,
                session_id=redact_id(session_id),
                user_id=user_id,
            )
            raise SessionContextMismatch()

        deleted = [session_id]
        await self._sessions.delete(session_id)

        if terminate_related:
            prefix = session.device_fingerprint[: self._prefix_length]
            for other in await self._sessions.list_for_user(user_id):
                if other.device_fingerprint[: self._prefix_length] == prefix:
                    await self._sessions.delete(other.session_id)
                    deleted.append(other.session_id)

        log_security_event(
            "logout",
            user_id=user_id,
            sessions=[redact_id(sid) for sid in deleted],
        )
        return deleted
