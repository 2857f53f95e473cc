"""
Role Resolver Implementations.

- EmailDomainRoleResolver: role by the domain of the verified email
- StaticRoleResolver: explicit per-email overrides in front of another resolver
"""

from typing import Mapping, Optional

from saas_metrics_auth.domain.value_objects import UserRole, VerifiedIdentity
from saas_metrics_auth.ports.authorization import RoleResolverPort

DEFAULT_DOMAIN_ROLES: dict[str, UserRole] = {
    "superadmin.com": UserRole.SUPER_ADMIN,
    "admin.com": UserRole.ADMIN,
}


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower() if "@" in email else ""


class EmailDomainRoleResolver(RoleResolverPort):
    """
    Map the email domain to a role.

    Domains must match exactly, so ``superadmin.com`` never falls
    through to ``admin.com``. Everything else is ``PUBLIC``.
    """

    def __init__(
        self,
        domain_roles: Optional[Mapping[str, UserRole]] = None,
        default_role: UserRole = UserRole.PUBLIC,
    ):
        roles = DEFAULT_DOMAIN_ROLES if domain_roles is None else domain_roles
        self._domain_roles = {d.lower(): r for d, r in roles.items()}
        self._default = default_role

    async def resolve_role(self, identity: VerifiedIdentity) -> UserRole:
        return self._domain_roles.get(email_domain(identity.email), self._default)


class StaticRoleResolver(RoleResolverPort):
    """Per-email role table, delegating unknown emails to ``fallback``."""

    def __init__(
        self,
        email_roles: Mapping[str, UserRole],
        fallback: Optional[RoleResolverPort] = None,
    ):
        self._email_roles = {e.lower(): r for e, r in email_roles.items()}
        self._fallback = fallback

    async def resolve_role(self, identity: VerifiedIdentity) -> UserRole:
        role = self._email_roles.get(identity.email.lower())
        if role is not None:
            return role
        if self._fallback is not None:
            return await self._fallback.resolve_role(identity)
        return UserRole.PUBLIC
