"""
Access and refresh token lifecycle.

Tokens are HS256 JWTs signed with python-jose. Access and refresh tokens
share one ``tokenId`` per issuance and are told apart by the ``type``
claim; they are signed with different secrets. The refresh token never
leaves the service in clear text: the caller receives it encrypted by
the KeyManager.

A token moves from issued to valid and ends either expired or revoked.
Both end states are final.
"""

import logging
import time
import uuid
from typing import Callable, Optional

from jose import jwt, JWTError

from saas_metrics_auth.application.key_manager import KeyManager
from saas_metrics_auth.audit import log_security_event, redact_id
from saas_metrics_auth.config import AuthConfig
from saas_metrics_auth.domain.errors import (
    InvalidTokenError,
    SessionContextMismatch,
    SessionExpired,
    TokenExpired,
    TokenRevoked,
    ValidationError,
)
from saas_metrics_auth.domain.value_objects import (
    AuthenticatedUser,
    EncryptedBlob,
    Session,
    SessionContext,
    TokenPair,
    TokenPayload,
    TokenType,
)
from saas_metrics_auth.ports.rate_limit import RateLimiterPort
from saas_metrics_auth.ports.revocation import RevocationStorePort
from saas_metrics_auth.ports.session import SessionStorePort

logger = logging.getLogger(__name__)

# Expiry is checked against the injected clock instead of inside jose
_DECODE_OPTIONS = {
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_aud": False,
}


class TokenService:
    """
    Issue, verify, refresh and revoke session-bound tokens.

    Usage:
        service = TokenService(
            config=config,
            key_manager=KeyManager(),
            session_store=InMemorySessionAdapter(),
            revocation_store=InMemoryRevocationStore(),
            refresh_rate_limiter=InMemoryRateLimiter(max_attempts=20),
        )
        pair = await service.generate_tokens(user, SessionContext("10.0.0.1", "fp"))
        payload = await service.verify_access_token(pair.access_token, "10.0.0.1")
    """

    def __init__(
        self,
        config: AuthConfig,
        key_manager: KeyManager,
        session_store: SessionStorePort,
        revocation_store: RevocationStorePort,
        refresh_rate_limiter: RateLimiterPort,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._keys = key_manager
        self._sessions = session_store
        self._revocations = revocation_store
        self._refresh_limiter = refresh_rate_limiter
        self._clock = clock

    # ═══════════════════════════════════════════════════════════════
    # ISSUANCE
    # ═══════════════════════════════════════════════════════════════

    def _sign(self, payload: TokenPayload, secret: str) -> str:
        return jwt.encode(
            payload.to_claims(), secret, algorithm=self.config.jwt_algorithm
        )

    async def generate_tokens(
        self, user: AuthenticatedUser, context: SessionContext
    ) -> TokenPair:
        """
        Create a session for ``user`` and issue a token pair bound to it.

        The oldest sessions are evicted first so the user never holds more
        than ``max_concurrent_sessions``. A second pass after creation
        settles concurrent logins that both passed the first check.
        """
        if not user.id:
            raise ValidationError("User id is required")
        if not context.ip_address or not context.fingerprint:
            raise ValidationError("Session context requires IP address and fingerprint")

        limit = self.config.max_concurrent_sessions
        now = int(self._clock())

        await self._sessions.enforce_limit(user.id, limit)

        session = Session(
            session_id=uuid.uuid4().hex,
            user_id=user.id,
            email=user.email,
            role=user.role,
            issued_at=now,
            expires_at=now + self.config.refresh_token_ttl,
            ip_address=context.ip_address,
            device_fingerprint=context.fingerprint,
        )
        await self._sessions.create(session, self.config.refresh_token_ttl)
        await self._sessions.enforce_limit(user.id, limit + 1)

        token_id = str(uuid.uuid4())
        access = TokenPayload(
            user_id=user.id,
            email=user.email,
            role=user.role,
            session_id=session.session_id,
            token_id=token_id,
            issued_at=now,
            expires_at=now + self.config.access_token_ttl,
            token_type=TokenType.ACCESS,
        )
        refresh = TokenPayload(
            user_id=user.id,
            email=user.email,
            role=user.role,
            session_id=session.session_id,
            token_id=token_id,
            issued_at=now,
            expires_at=now + self.config.refresh_token_ttl,
            token_type=TokenType.REFRESH,
        )

        access_token = self._sign(access, self.config.jwt_secret)
        refresh_jwt = self._sign(refresh, self.config.jwt_refresh_secret)
        encrypted_refresh = self._keys.encrypt(refresh_jwt).to_token()

        log_security_event(
            "tokens_issued",
            user_id=user.id,
            session_id=redact_id(session.session_id),
            token_id=redact_id(token_id),
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=encrypted_refresh,
            expires_in=self.config.access_token_ttl,
        )

    # ═══════════════════════════════════════════════════════════════
    # VERIFICATION
    # ═══════════════════════════════════════════════════════════════

    def _decode(self, token: str, secret: str, expected: TokenType) -> TokenPayload:
        if not token or not isinstance(token, str):
            raise InvalidTokenError("Token is empty")
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[self.config.jwt_algorithm],
                options=_DECODE_OPTIONS,
            )
        except JWTError as e:
            raise InvalidTokenError(str(e))

        payload = TokenPayload.from_claims(claims)
        if payload.token_type != expected:
            raise InvalidTokenError(
                f"Expected a {expected.value} token",
                details={"type": payload.token_type.value},
            )

        now = self._clock()
        if now < payload.issued_at:
            raise InvalidTokenError("Token is not valid yet", "TOKEN_NOT_YET_VALID")
        if now >= payload.expires_at:
            raise TokenExpired(details={"expired_at": payload.expires_at})
        return payload

    async def _live_session(
        self, payload: TokenPayload, ip_address: Optional[str]
    ) -> Session:
        if await self._revocations.is_revoked(payload.token_id):
            raise TokenRevoked()

        session = await self._sessions.get(payload.session_id)
        if session is None or session.user_id != payload.user_id:
            raise SessionExpired()

        if (
            self.config.strict_ip_check
            and ip_address
            and session.ip_address != ip_address
        ):
            log_security_event(
                "session_ip_mismatch",
                level=logging.WARNING,
                session_id=redact_id(session.session_id),
                stored_ip=session.ip_address,
                current_ip=ip_address,
            )
            raise SessionContextMismatch()
        return session

    async def verify_access_token(
        self, token: str, ip_address: Optional[str] = None
    ) -> TokenPayload:
        """
        Verify an access token and the session behind it.

        Raises:
            InvalidTokenError: Malformed, badly signed or not an access token.
            TokenExpired: Outside the ``iat``/``exp`` window.
            TokenRevoked: The token id was revoked.
            SessionExpired: The session was evicted, expired or logged out.
            SessionContextMismatch: Strict IP pinning is on and the IP differs.
        """
        payload = self._decode(token, self.config.jwt_secret, TokenType.ACCESS)
        await self._live_session(payload, ip_address)
        return payload

    # ═══════════════════════════════════════════════════════════════
    # REFRESH & REVOCATION
    # ═══════════════════════════════════════════════════════════════

    async def refresh(
        self, encrypted_refresh_token: str, ip_address: str
    ) -> TokenPair:
        """
        Exchange an encrypted refresh token for a new pair.

        The consumed token id is revoked and its session replaced, so a
        refresh token works exactly once.
        """
        if not ip_address:
            raise ValidationError("IP address is required")
        await self._refresh_limiter.consume(ip_address)

        try:
            blob = EncryptedBlob.from_token(encrypted_refresh_token)
        except ValidationError as e:
            raise InvalidTokenError("Refresh token is malformed", details=e.details)
        refresh_jwt = self._keys.decrypt(blob)

        payload = self._decode(
            refresh_jwt, self.config.jwt_refresh_secret, TokenType.REFRESH
        )
        session = await self._live_session(payload, ip_address)

        if not await self._revocations.revoke(
            payload.token_id, self._remaining_ttl(payload.expires_at)
        ):
            # Another refresh consumed this token first
            raise TokenRevoked()
        await self._sessions.delete(session.session_id)

        log_security_event(
            "tokens_refreshed",
            user_id=payload.user_id,
            session_id=redact_id(session.session_id),
            token_id=redact_id(payload.token_id),
        )
        user = AuthenticatedUser(
            id=payload.user_id, email=payload.email, role=payload.role
        )
        return await self.generate_tokens(
            user, SessionContext(ip_address, session.device_fingerprint)
        )

    def _remaining_ttl(self, expires_at: Optional[int]) -> int:
        if expires_at is None:
            return self.config.refresh_token_ttl
        return max(1, int(expires_at - self._clock()))

    async def revoke(self, token_id: str, expires_at: Optional[int] = None) -> None:
        """
        Revoke every token carrying ``token_id``.

        The entry lives as long as the token could; without ``expires_at``
        the refresh lifetime is used.
        """
        if not token_id:
            raise ValidationError("Token id is required")
        await self._revocations.revoke(token_id, self._remaining_ttl(expires_at))
        log_security_event("token_revoked", token_id=redact_id(token_id))
