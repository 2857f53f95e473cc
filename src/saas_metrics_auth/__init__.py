"""
saas-metrics-auth: authentication and session security for the SaaS metrics platform.

OAuth2 sign-in, session-bound JWT access/refresh tokens, concurrent-session
limits, rate limiting, revocation, and rotating encryption of refresh tokens.
"""

__version__ = "0.1.0"

from saas_metrics_auth.config import AuthConfig, GoogleOAuthConfig
from saas_metrics_auth.context import (
    RequestContext,
    request_context,
    use_request_context,
    get_correlation_id,
)
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
    KeyNotFoundError,
    AuthenticationTagMismatch,
    UpstreamTimeout,
    UpstreamUnavailable,
    StoreUnavailable,
    AuthorizationError,
)
from saas_metrics_auth.domain.value_objects import (
    UserRole,
    AuthenticatedUser,
    SessionContext,
    Session,
    TokenPayload,
    TokenPair,
    EncryptedBlob,
)
from saas_metrics_auth.application import (
    KeyManager,
    KeyRotationTask,
    TokenService,
    AuthenticationFlow,
    SignInResult,
    authorize,
)
from saas_metrics_auth.factory import AuthComponents, create_auth_components

__all__ = [
    # Version
    "__version__",
    # Configuration
    "AuthConfig",
    "GoogleOAuthConfig",
    # Context
    "RequestContext",
    "request_context",
    "use_request_context",
    "get_correlation_id",
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
    "KeyNotFoundError",
    "AuthenticationTagMismatch",
    "UpstreamTimeout",
    "UpstreamUnavailable",
    "StoreUnavailable",
    "AuthorizationError",
    # Value objects
    "UserRole",
    "AuthenticatedUser",
    "SessionContext",
    "Session",
    "TokenPayload",
    "TokenPair",
    "EncryptedBlob",
    # Services
    "KeyManager",
    "KeyRotationTask",
    "TokenService",
    "AuthenticationFlow",
    "SignInResult",
    "authorize",
    # Wiring
    "AuthComponents",
    "create_auth_components",
]
