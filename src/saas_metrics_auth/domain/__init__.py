"""Domain layer for authentication."""

from saas_metrics_auth.domain.errors import (
    AuthDomainError,
    ValidationError,
    RateLimitExceeded,
    AuthenticationError,
    IdentityNotVerified,
    InvalidAuthorizationCode,
    InvalidTokenError,
    TokenExpired,
    TokenRevoked,
    SessionExpired,
    SessionContextMismatch,
    CryptoError,
    KeyNotFoundError,
    AuthenticationTagMismatch,
    UpstreamTimeout,
    UpstreamUnavailable,
    StoreUnavailable,
    AuthorizationError,
)
from saas_metrics_auth.domain.value_objects import (
    UserRole,
    TokenType,
    VerifiedIdentity,
    AuthenticatedUser,
    SessionContext,
    Session,
    TokenPayload,
    TokenPair,
    KeyRecord,
    EncryptedBlob,
)

__all__ = [
    # Errors
    "AuthDomainError",
    "ValidationError",
    "RateLimitExceeded",
    "AuthenticationError",
    "IdentityNotVerified",
    "InvalidAuthorizationCode",
    "InvalidTokenError",
    "TokenExpired",
    "TokenRevoked",
    "SessionExpired",
    "SessionContextMismatch",
    "CryptoError",
    "KeyNotFoundError",
    "AuthenticationTagMismatch",
    "UpstreamTimeout",
    "UpstreamUnavailable",
    "StoreUnavailable",
    "AuthorizationError",
    # Value Objects
    "UserRole",
    "TokenType",
    "VerifiedIdentity",
    "AuthenticatedUser",
    "SessionContext",
    "Session",
    "TokenPayload",
    "TokenPair",
    "KeyRecord",
    "EncryptedBlob",
]
