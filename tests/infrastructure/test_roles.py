"""
Tests for Role Resolvers.
"""

import pytest

from saas_metrics_auth.domain.value_objects import UserRole, VerifiedIdentity
from saas_metrics_auth.infrastructure.adapters.roles import (
    EmailDomainRoleResolver,
    StaticRoleResolver,
)


def identity(email):
    return VerifiedIdentity(email=email, email_verified=True, subject_id="sub")


@pytest.mark.parametrize(
    "email, role",
    [
        ("root@superadmin.com", UserRole.SUPER_ADMIN),
        ("ops@admin.com", UserRole.ADMIN),
        ("Ops@ADMIN.com", UserRole.ADMIN),
        ("alice@example.com", UserRole.PUBLIC),
        ("someone@notadmin.com", UserRole.PUBLIC),
        ("no-at-sign", UserRole.PUBLIC),
    ],
)
@pytest.mark.asyncio
async def test_email_domain_rules(email, role):
    assert await EmailDomainRoleResolver().resolve_role(identity(email)) is role


@pytest.mark.asyncio
async def test_custom_domain_table():
    resolver = EmailDomainRoleResolver({"corp.io": UserRole.ADMIN})
    assert await resolver.resolve_role(identity("a@corp.io")) is UserRole.ADMIN
    assert await resolver.resolve_role(identity("a@admin.com")) is UserRole.PUBLIC


@pytest.mark.asyncio
async def test_static_overrides_fall_back():
    resolver = StaticRoleResolver(
        {"boss@example.com": UserRole.SUPER_ADMIN}, fallback=EmailDomainRoleResolver()
    )
    assert await resolver.resolve_role(identity("BOSS@example.com")) is UserRole.SUPER_ADMIN
    assert await resolver.resolve_role(identity("x@admin.com")) is UserRole.ADMIN


@pytest.mark.asyncio
async def test_static_without_fallback_is_public():
    resolver = StaticRoleResolver({})
    assert await resolver.resolve_role(identity("x@admin.com")) is UserRole.PUBLIC
