"""
Domain errors for the authentication and session-security core.

Every failure carries a stable ``code`` so the transport layer can map it
without inspecting messages, and a ``retryable`` flag telling the caller
whether backing off and trying again can succeed.
"""

from typing import Optional, Any


class AuthDomainError(Exception):
    """Base class for all auth domain errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: str = "AUTH_ERROR",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Stable error shape handed across the component boundary."""
        return {"error": self.code, "message": self.message, "details": self.details}


class ValidationError(AuthDomainError):
    """Raised for malformed input. The caller has to fix the request."""

    def __init__(
        self,
        message: str = "Invalid input",
        code: str = "VALIDATION_ERROR",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class RateLimitExceeded(AuthDomainError):
    """Raised when an identity used up its attempts for the current window."""

    retryable = True

    def __init__(
        self,
        message: str = "Too many attempts",
        code: str = "RATE_LIMIT_EXCEEDED",
        details: Optional[dict[str, Any]] = None,
        retry_after: Optional[int] = None,
    ):
        details = dict(details or {})
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(message, code, details)
        self.retry_after = retry_after


class AuthenticationError(AuthDomainError):
    """Raised when authentication fails (invalid credentials, expired, etc.)."""

    def __init__(
        self,
        message: str = "Authentication failed",
        code: str = "AUTHENTICATION_FAILED",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class IdentityNotVerified(AuthenticationError):
    """Raised when the identity provider reports an unverified email."""

    def __init__(
        self,
        message: str = "Email not verified",
        code: str = "IDENTITY_NOT_VERIFIED",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class InvalidAuthorizationCode(AuthenticationError):
    """Raised when the OAuth2 code is invalid, expired or already used."""

    def __init__(
        self,
        message: str = "Invalid authorization code",
        code: str = "INVALID_AUTHORIZATION_CODE",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class InvalidTokenError(AuthenticationError):
    """Raised when a token is malformed, badly signed or of the wrong type."""

    def __init__(
        self,
        message: str = "Invalid token",
        code: str = "INVALID_TOKEN",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class TokenExpired(InvalidTokenError):
    """Raised when a token is used outside its ``iat``/``exp`` window."""

    def __init__(
        self,
        message: str = "Token has expired",
        code: str = "TOKEN_EXPIRED",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class TokenRevoked(InvalidTokenError):
    """Raised when the token id is in the revocation set."""

    def __init__(
        self,
        message: str = "Token has been revoked",
        code: str = "TOKEN_REVOKED",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class SessionExpired(AuthenticationError):
    """Raised when the session behind a token is gone (expired, evicted, logged out)."""

    def __init__(
        self,
        message: str = "Session expired",
        code: str = "SESSION_EXPIRED",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class SessionContextMismatch(AuthenticationError):
    """Raised when the request context does not match the stored session."""

    def __init__(
        self,
        message: str = "Invalid session context",
        code: str = "SESSION_CONTEXT_MISMATCH",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class CryptoError(AuthenticationError):
    """Base class for tamper-evidence failures. Never retryable."""


class KeyNotFoundError(CryptoError):
    """Raised when a blob references a key version that is no longer retained."""

    def __init__(
        self,
        message: str = "Encryption key version not found",
        code: str = "KEY_NOT_FOUND",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class AuthenticationTagMismatch(CryptoError):
    """Raised when AEAD tag verification fails (tampering or wrong key)."""

    def __init__(
        self,
        message: str = "Authentication tag mismatch",
        code: str = "AUTH_TAG_MISMATCH",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class UpstreamTimeout(AuthDomainError):
    """Raised when the identity provider or the shared store did not answer in time."""

    retryable = True

    def __init__(
        self,
        message: str = "Upstream call timed out",
        code: str = "UPSTREAM_TIMEOUT",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class UpstreamUnavailable(AuthDomainError):
    """Raised when the identity provider is unreachable or answered with a server error."""

    retryable = True

    def __init__(
        self,
        message: str = "Identity provider unavailable",
        code: str = "UPSTREAM_UNAVAILABLE",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class StoreUnavailable(AuthDomainError):
    """Raised when the shared session/rate-limit store cannot be reached.

    Authentication fails closed: no access is granted without a
    store-confirmed session.
    """

    retryable = True

    def __init__(
        self,
        message: str = "Session store unavailable",
        code: str = "STORE_UNAVAILABLE",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class AuthorizationError(AuthDomainError):
    """Raised when a user is authenticated but lacks permission."""

    def __init__(
        self,
        message: str = "Access denied",
        required_roles: Optional[list[str]] = None,
        role: Optional[str] = None,
        code: str = "PERMISSION_DENIED",
    ):
        details = {"required_roles": required_roles, "role": role}
        # Filter None values
        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message, code, details)
        self.required_roles = required_roles
        self.role = role
