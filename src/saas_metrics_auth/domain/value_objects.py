"""
Domain value objects for authentication.

Value objects are immutable and have no identity; they are defined
only by their attributes. Sessions, token claims and encrypted blobs
all cross process boundaries, so each one knows how to serialise itself.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from saas_metrics_auth.domain.errors import InvalidTokenError, ValidationError


class UserRole(str, Enum):
    """Role used for access control across the platform."""

    PUBLIC = "PUBLIC"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"

    @classmethod
    def parse(cls, value: Any) -> "UserRole":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unknown role: {value!r}", details={"role": value})


class TokenType(str, Enum):
    """Distinguishes the two JWTs of a pair sharing one claim shape."""

    ACCESS = "access"
    REFRESH = "refresh"


# ═══════════════════════════════════════════════════════════════
# IDENTITY
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class VerifiedIdentity:
    """
    Identity assertion returned by the identity provider after a code exchange.
    """

    email: str
    email_verified: bool
    subject_id: str


@dataclass(frozen=True)
class AuthenticatedUser:
    """User record produced by a successful login."""

    id: str
    email: str
    role: UserRole
    last_login: Optional[datetime] = None
    is_active: bool = True


@dataclass(frozen=True)
class SessionContext:
    """Device/browser context a session is bound to."""

    ip_address: str
    fingerprint: str


# ═══════════════════════════════════════════════════════════════
# SESSION
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Session:
    """
    One authenticated device/browser binding.

    Exclusively owned by the session store; everything else only holds
    the ``session_id``. Timestamps are epoch seconds.
    """

    session_id: str
    user_id: str
    role: UserRole
    issued_at: int
    expires_at: int
    ip_address: str
    device_fingerprint: str
    email: str = ""

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "email": self.email,
            "role": self.role.value,
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
            "ip_address": self.ip_address,
            "device_fingerprint": self.device_fingerprint,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(
            session_id=data["session_id"],
            user_id=data["user_id"],
            email=data.get("email", ""),
            role=UserRole.parse(data["role"]),
            issued_at=int(data["issued_at"]),
            expires_at=int(data["expires_at"]),
            ip_address=data.get("ip_address", ""),
            device_fingerprint=data.get("device_fingerprint", ""),
        )


# ═══════════════════════════════════════════════════════════════
# TOKENS
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TokenPayload:
    """
    Claim set signed into access and refresh JWTs.

    The wire names are camelCase so tokens stay readable by the
    existing frontend; ``iat``/``exp`` follow the JWT registered claims.
    """

    user_id: str
    email: str
    role: UserRole
    session_id: str
    token_id: str
    issued_at: int
    expires_at: int
    token_type: TokenType = TokenType.ACCESS

    def to_claims(self) -> dict:
        return {
            "userId": self.user_id,
            "email": self.email,
            "role": self.role.value,
            "sessionId": self.session_id,
            "tokenId": self.token_id,
            "iat": self.issued_at,
            "exp": self.expires_at,
            "type": self.token_type.value,
        }

    @classmethod
    def from_claims(cls, claims: dict) -> "TokenPayload":
        missing = [
            name
            for name in ("userId", "role", "sessionId", "tokenId", "iat", "exp", "type")
            if name not in claims
        ]
        if missing:
            raise InvalidTokenError(
                "Token is missing required claims", details={"missing": missing}
            )
        try:
            return cls(
                user_id=claims["userId"],
                email=claims.get("email", ""),
                role=UserRole(claims["role"]),
                session_id=claims["sessionId"],
                token_id=claims["tokenId"],
                issued_at=int(claims["iat"]),
                expires_at=int(claims["exp"]),
                token_type=TokenType(claims["type"]),
            )
        except (TypeError, ValueError):
            raise InvalidTokenError("Token claims are malformed")


@dataclass(frozen=True)
class TokenPair:
    """Tokens handed to the caller after login or refresh."""

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


# ═══════════════════════════════════════════════════════════════
# ENCRYPTION
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class KeyRecord:
    """One generation of the symmetric encryption key."""

    version: int
    key_material: bytes = field(repr=False)
    created_at: float


def _b64decode(value: Any, name: str) -> bytes:
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a base64 string")
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError):
        raise ValidationError(f"{name} is not valid base64")


@dataclass(frozen=True)
class EncryptedBlob:
    """
    Ciphertext wrapper for data at rest.

    Decryption must use exactly the key identified by ``key_version``.
    """

    cipher_text: bytes
    nonce: bytes
    auth_tag: bytes
    key_version: int

    def to_dict(self) -> dict:
        return {
            "cipherText": base64.b64encode(self.cipher_text).decode("ascii"),
            "nonce": base64.b64encode(self.nonce).decode("ascii"),
            "authTag": base64.b64encode(self.auth_tag).decode("ascii"),
            "keyVersion": self.key_version,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "EncryptedBlob":
        if not isinstance(data, dict):
            raise ValidationError("Encrypted blob must be an object")
        version = data.get("keyVersion")
        if not isinstance(version, int) or isinstance(version, bool) or version < 1:
            raise ValidationError("keyVersion must be a positive integer")
        return cls(
            cipher_text=_b64decode(data.get("cipherText"), "cipherText"),
            nonce=_b64decode(data.get("nonce"), "nonce"),
            auth_tag=_b64decode(data.get("authTag"), "authTag"),
            key_version=version,
        )

    def to_token(self) -> str:
        """Opaque single-string form the client stores."""
        raw = json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    @classmethod
    def from_token(cls, token: str) -> "EncryptedBlob":
        if not token or not isinstance(token, str):
            raise ValidationError("Encrypted token is empty")
        padded = token + "=" * (-len(token) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded.encode("ascii"))
            data = json.loads(raw.decode("utf-8"))
        except (binascii.Error, UnicodeError, ValueError):
            raise ValidationError("Encrypted token is malformed")
        return cls.from_dict(data)
