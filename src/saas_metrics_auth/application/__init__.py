"""Application services: key management, tokens, sign-in and authorization."""

from saas_metrics_auth.application.key_manager import KeyManager, KeyRotationTask
from saas_metrics_auth.application.tokens import TokenService
from saas_metrics_auth.application.authentication import (
    AuthenticationFlow,
    SignInResult,
)
from saas_metrics_auth.application.authorization import authorize

__all__ = [
    "KeyManager",
    "KeyRotationTask",
    "TokenService",
    "AuthenticationFlow",
    "SignInResult",
    "authorize",
]
