"""
Google OAuth2 Identity Provider Adapter.

Exchanges an authorization code at Google's token endpoint with httpx and
validates the returned ID token against Google's JWKS with python-jose.
"""

import logging
import time
from typing import Any, Callable, Optional

import httpx
from jose import jwt, JWTError

from saas_metrics_auth.config import GoogleOAuthConfig
from saas_metrics_auth.domain.errors import (
    AuthenticationError,
    InvalidAuthorizationCode,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from saas_metrics_auth.domain.value_objects import VerifiedIdentity
from saas_metrics_auth.infrastructure.adapters.roles import email_domain
from saas_metrics_auth.ports.identity_provider import IdentityProviderPort

logger = logging.getLogger(__name__)


def _json_object(response: httpx.Response) -> Optional[dict[str, Any]]:
    """Decode a JSON object body, or None when the body is anything else."""
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


class GoogleIdentityProvider(IdentityProviderPort):
    """
    Google implementation of IdentityProviderPort.

    Example usage:
        config = GoogleOAuthConfig(
            client_id="...apps.googleusercontent.com",
            client_secret="secret",
            redirect_uri="https://app.example.com/auth/callback",
        )
        provider = GoogleIdentityProvider(config)
        identity = await provider.exchange_code(code)

    Pass ``http_client`` to reuse a pooled ``httpx.AsyncClient``; otherwise
    a short-lived client is opened per request.
    """

    def __init__(
        self,
        config: GoogleOAuthConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._http = http_client
        self._timeout = timeout
        self._clock = clock
        self._jwks: Optional[dict[str, Any]] = None
        self._jwks_expires_at = 0.0

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._http is not None:
                return await self._http.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            raise UpstreamTimeout(
                "Identity provider did not answer in time", details={"url": url}
            )
        except httpx.TransportError as e:
            logger.warning(f"Identity provider unreachable: {e}")
            raise UpstreamUnavailable(details={"url": url})

    async def _get_jwks(self, force_refresh: bool = False) -> dict[str, Any]:
        now = self._clock()
        if not force_refresh and self._jwks and now < self._jwks_expires_at:
            return self._jwks

        response = await self._request("GET", self.config.jwks_url)
        if response.status_code != 200:
            raise UpstreamUnavailable(
                "Could not fetch identity provider signing keys",
                details={"status": response.status_code},
            )
        jwks = _json_object(response)
        if jwks is None or not isinstance(jwks.get("keys"), list):
            raise UpstreamUnavailable(
                "Identity provider returned malformed signing keys",
                details={"url": self.config.jwks_url},
            )
        self._jwks = jwks
        self._jwks_expires_at = now + self.config.jwks_cache_seconds
        logger.debug(f"Fetched JWKS with {len(self._jwks.get('keys', []))} keys")
        return self._jwks

    def _has_kid(self, jwks: dict[str, Any], kid: Optional[str]) -> bool:
        return any(
            isinstance(key, dict) and key.get("kid") == kid
            for key in jwks.get("keys", [])
        )

    async def _verify_id_token(
        self, id_token: str, access_token: Optional[str]
    ) -> dict[str, Any]:
        try:
            kid = jwt.get_unverified_header(id_token).get("kid")
        except JWTError as e:
            raise InvalidAuthorizationCode(
                "ID token is malformed", details={"reason": str(e)}
            )

        jwks = await self._get_jwks()
        if kid and not self._has_kid(jwks, kid):
            # Google rotated its signing keys since the last fetch
            jwks = await self._get_jwks(force_refresh=True)

        try:
            return jwt.decode(
                id_token,
                jwks,
                algorithms=["RS256"],
                audience=self.config.client_id,
                issuer=list(self.config.issuers),
                access_token=access_token,
            )
        except JWTError as e:
            raise InvalidAuthorizationCode(
                "ID token failed verification", details={"reason": str(e)}
            )

    async def exchange_code(self, code: str) -> VerifiedIdentity:
        response = await self._request(
            "POST",
            self.config.token_url,
            data={
                "code": code,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "redirect_uri": self.config.redirect_uri,
                "grant_type": "authorization_code",
            },
            headers={"Accept": "application/json"},
        )

        if response.status_code >= 500:
            raise UpstreamUnavailable(details={"status": response.status_code})
        if response.status_code >= 400:
            body = _json_object(response) or {}
            error = body.get("error", "invalid_request")
            if not isinstance(error, str):
                error = "invalid_request"
            raise InvalidAuthorizationCode(details={"error": error})

        tokens = _json_object(response)
        if tokens is None:
            raise UpstreamUnavailable(
                "Identity provider returned a malformed token response",
                details={"status": response.status_code},
            )
        id_token = tokens.get("id_token")
        if not id_token or not isinstance(id_token, str):
            raise InvalidAuthorizationCode("Token response has no ID token")

        claims = await self._verify_id_token(id_token, tokens.get("access_token"))

        email = claims.get("email") or ""
        verified = claims.get("email_verified")
        if isinstance(verified, str):
            verified = verified.lower() == "true"

        allowed = self.config.allowed_domains
        if allowed and email_domain(email) not in allowed:
            raise AuthenticationError(
                "Email domain is not allowed",
                "DOMAIN_NOT_ALLOWED",
                details={"domain": email_domain(email)},
            )

        return VerifiedIdentity(
            email=email,
            email_verified=bool(verified),
            subject_id=claims.get("sub", ""),
        )
