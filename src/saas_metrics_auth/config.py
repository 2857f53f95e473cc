"""
Configuration for the authentication core.

Defaults mirror the production service: 30 minute access tokens, 7 day
refresh tokens and sessions, three concurrent sessions per user, and
five login attempts per 15 minute window.
"""

import base64
import binascii
import os
from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional

from saas_metrics_auth.domain.errors import ValidationError

MIN_SECRET_LENGTH = 32
ENCRYPTION_KEY_BYTES = 32


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", details={"value": raw})


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _env_list(env: Mapping[str, str], name: str) -> list[str]:
    raw = env.get(name, "")
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


@dataclass
class GoogleOAuthConfig:
    """Configuration for the Google OAuth2 identity provider."""

    client_id: str
    client_secret: str
    redirect_uri: str
    token_url: str = "https://oauth2.googleapis.com/token"
    jwks_url: str = "https://www.googleapis.com/oauth2/v3/certs"
    issuers: tuple[str, ...] = ("https://accounts.google.com", "accounts.google.com")
    # Empty means any domain is accepted
    allowed_domains: list[str] = field(default_factory=list)
    jwks_cache_seconds: int = 3600


@dataclass
class AuthConfig:
    """Configuration for tokens, sessions, rate limits and encryption."""

    jwt_secret: str
    jwt_refresh_secret: str
    jwt_algorithm: str = "HS256"
    access_token_ttl: int = 1800
    refresh_token_ttl: int = 604800

    max_concurrent_sessions: int = 3
    strict_ip_check: bool = False
    fingerprint_prefix_length: int = 16

    rate_limit_window: int = 900
    login_max_attempts: int = 5
    refresh_max_attempts: int = 20

    # Base64 encoded 32 byte key; a fresh key is generated when absent
    encryption_key: Optional[str] = None
    key_rotation_interval: int = 86400
    key_retention_period: int = 90 * 86400

    identity_timeout: float = 10.0
    store_timeout: float = 2.0

    backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"

    google: Optional[GoogleOAuthConfig] = None

    def initial_key_bytes(self) -> Optional[bytes]:
        """Decode the configured encryption key, if any."""
        if not self.encryption_key:
            return None
        try:
            key = base64.b64decode(self.encryption_key, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("Encryption key is not valid base64")
        if len(key) != ENCRYPTION_KEY_BYTES:
            raise ValidationError(
                f"Encryption key must be {ENCRYPTION_KEY_BYTES} bytes",
                details={"length": len(key)},
            )
        return key

    def validate(self) -> "AuthConfig":
        """
        Check the configuration and return it.

        Raises:
            ValidationError: On the first invalid setting found.
        """
        for name in ("jwt_secret", "jwt_refresh_secret"):
            value = getattr(self, name)
            if not value or len(value) < MIN_SECRET_LENGTH:
                raise ValidationError(
                    f"{name} must be at least {MIN_SECRET_LENGTH} characters long",
                    details={"field": name},
                )
        if self.jwt_secret == self.jwt_refresh_secret:
            raise ValidationError(
                "Access and refresh tokens must use different secrets",
                details={"field": "jwt_refresh_secret"},
            )

        for name in (
            "access_token_ttl",
            "refresh_token_ttl",
            "max_concurrent_sessions",
            "rate_limit_window",
            "login_max_attempts",
            "refresh_max_attempts",
            "key_rotation_interval",
            "key_retention_period",
            "fingerprint_prefix_length",
        ):
            if getattr(self, name) <= 0:
                raise ValidationError(
                    f"{name} must be positive", details={"field": name}
                )
        if self.access_token_ttl >= self.refresh_token_ttl:
            raise ValidationError(
                "access_token_ttl must be shorter than refresh_token_ttl",
                details={"field": "access_token_ttl"},
            )
        if self.identity_timeout <= 0 or self.store_timeout <= 0:
            raise ValidationError("Timeouts must be positive")
        if self.backend not in ("memory", "redis"):
            raise ValidationError(
                f"Unknown backend: {self.backend}", details={"field": "backend"}
            )

        self.initial_key_bytes()

        if self.google is not None:
            for name in ("client_id", "client_secret", "redirect_uri"):
                if not getattr(self.google, name):
                    raise ValidationError(
                        f"Google OAuth {name} is required",
                        details={"field": f"google.{name}"},
                    )
        return self

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "AuthConfig":
        """
        Build configuration from a plain mapping, e.g. a dependency-injector
        ``Configuration`` value. Unknown keys are ignored; ``google`` may be
        a nested mapping. The result is validated.
        """
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        options = {k: v for k, v in data.items() if k in known and v is not None}
        options.setdefault("jwt_secret", "")
        options.setdefault("jwt_refresh_secret", "")

        google = options.pop("google", None)
        if isinstance(google, Mapping):
            google_known = {f.name for f in fields(GoogleOAuthConfig)}
            google = GoogleOAuthConfig(
                **{k: v for k, v in google.items() if k in google_known}
            )
        return cls(google=google, **options).validate()

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AuthConfig":
        """
        Build configuration from ``AUTH_*`` environment variables.

        Google OAuth is configured only when ``AUTH_GOOGLE_CLIENT_ID`` is set.
        The result is validated before it is returned.
        """
        env = os.environ if env is None else env

        google = None
        client_id = env.get("AUTH_GOOGLE_CLIENT_ID")
        if client_id:
            google = GoogleOAuthConfig(
                client_id=client_id,
                client_secret=env.get("AUTH_GOOGLE_CLIENT_SECRET", ""),
                redirect_uri=env.get("AUTH_GOOGLE_REDIRECT_URI", ""),
                allowed_domains=_env_list(env, "AUTH_ALLOWED_DOMAINS"),
            )

        config = cls(
            jwt_secret=env.get("AUTH_JWT_SECRET", ""),
            jwt_refresh_secret=env.get("AUTH_JWT_REFRESH_SECRET", ""),
            access_token_ttl=_env_int(env, "AUTH_ACCESS_TOKEN_TTL", 1800),
            refresh_token_ttl=_env_int(env, "AUTH_REFRESH_TOKEN_TTL", 604800),
            max_concurrent_sessions=_env_int(env, "AUTH_MAX_CONCURRENT_SESSIONS", 3),
            strict_ip_check=_env_bool(env, "AUTH_STRICT_IP_CHECK", False),
            rate_limit_window=_env_int(env, "AUTH_RATE_LIMIT_WINDOW", 900),
            login_max_attempts=_env_int(env, "AUTH_LOGIN_MAX_ATTEMPTS", 5),
            refresh_max_attempts=_env_int(env, "AUTH_REFRESH_MAX_ATTEMPTS", 20),
            encryption_key=env.get("AUTH_ENCRYPTION_KEY") or None,
            key_rotation_interval=_env_int(env, "AUTH_KEY_ROTATION_INTERVAL", 86400),
            key_retention_period=_env_int(
                env, "AUTH_KEY_RETENTION_PERIOD", 90 * 86400
            ),
            backend=env.get("AUTH_BACKEND", "memory"),
            redis_url=env.get("AUTH_REDIS_URL", "redis://localhost:6379/0"),
            google=google,
        )
        return config.validate()
