"""
Authorization Port.

Decides which role a verified identity receives.
"""

from typing import Protocol, runtime_checkable

from saas_metrics_auth.domain.value_objects import UserRole, VerifiedIdentity


@runtime_checkable
class RoleResolverPort(Protocol):
    """
    Port for role assignment.

    Implementations:
    - EmailDomainRoleResolver: maps email domains to roles
    - StaticRoleResolver: explicit email -> role table
    """

    async def resolve_role(self, identity: VerifiedIdentity) -> UserRole:
        """Return the role for ``identity``. Unknown identities get ``PUBLIC``."""
        ...
