"""Role-based access checks for verified tokens."""

from typing import Iterable, Union

from saas_metrics_auth.domain.errors import AuthorizationError
from saas_metrics_auth.domain.value_objects import (
    AuthenticatedUser,
    TokenPayload,
    UserRole,
)

Principal = Union[TokenPayload, AuthenticatedUser]


def authorize(principal: Principal, allowed_roles: Iterable[UserRole]) -> Principal:
    """
    Return ``principal`` if its role is one of ``allowed_roles``.

    An empty ``allowed_roles`` admits nobody.

    Raises:
        ValidationError: An allowed role is not a known role.
        AuthorizationError: The role is not allowed.
    """
    allowed = [UserRole.parse(role) for role in allowed_roles]
    if principal.role not in allowed:
        raise AuthorizationError(
            "Insufficient permissions",
            required_roles=[role.value for role in allowed],
            role=principal.role.value,
        )
    return principal
