"""
Unit tests for entitlement, override and platform-role administration
"""

import pytest
import uuid

from keystone.core.errors import AuthenticationAbsent, AuthorizationDenied, NotFound
from keystone.models import PlatformRank
from keystone.services.access import AccessReason, has_module_access
from keystone.services.audit import AuditAction
from keystone.services.catalog import MODULE_CATALOG, seed_modules
from keystone.services.entitlements import (
    grant_platform_role,
    list_tenant_entitlements,
    revoke_platform_role,
    set_tenant_entitlement,
    set_user_entitlement,
)
from keystone.services.levels import Level, get_platform_level


# Catalog

def test_seed_modules_is_idempotent(repo):
    first = seed_modules(repo)
    second = seed_modules(repo)
    assert len(first) == len(second) == len(MODULE_CATALOG)
    assert len(repo.list_modules()) == len(MODULE_CATALOG)


# Tenant entitlements

def test_list_tenant_entitlements_joins_catalog(repo, org):
    items = {item.module_key: item for item in list_tenant_entitlements(repo, org.tenant.id)}
    assert len(items) == len(MODULE_CATALOG)
    assert items["inventory"].is_enabled
    assert not items["payments"].is_enabled
    assert items["payments"].limits is None


def test_list_tenant_entitlements_missing_tenant(repo, modules):
    with pytest.raises(NotFound):
        list_tenant_entitlements(repo, uuid.uuid4())


def test_platform_admin_enables_module(repo, org, platform_admin):
    entitlement = set_tenant_entitlement(
        repo, platform_admin.id, org.tenant.id, "payments", is_enabled=True, limits={"maxAccounts": 2}
    )
    assert entitlement.is_enabled
    assert entitlement.limits == {"maxAccounts": 2}

    decision = has_module_access(repo, org.u3.id, org.tenant.id, "payments")
    assert decision.allowed
    assert decision.reason == AccessReason.TENANT_DEFAULT

    entry = repo.list_audit(org.tenant.id, action=AuditAction.ENTITLEMENT_UPDATE)[0]
    assert entry.meta["moduleKey"] == "payments"
    assert entry.meta["before"] is None


def test_partial_update_keeps_other_fields(repo, org, platform_admin):
    set_tenant_entitlement(repo, platform_admin.id, org.tenant.id, "inventory", limits={"maxSkus": 10})
    entitlement = repo.get_entitlement(org.tenant.id, "inventory")
    assert entitlement.is_enabled
    assert entitlement.limits == {"maxSkus": 10}

    set_tenant_entitlement(repo, platform_admin.id, org.tenant.id, "inventory", is_enabled=False)
    entitlement = repo.get_entitlement(org.tenant.id, "inventory")
    assert not entitlement.is_enabled
    assert entitlement.limits == {"maxSkus": 10}

    set_tenant_entitlement(repo, platform_admin.id, org.tenant.id, "inventory", limits=None)
    assert repo.get_entitlement(org.tenant.id, "inventory").limits is None


def test_tenant_entitlement_requires_platform_level(repo, org):
    with pytest.raises(AuthorizationDenied):
        set_tenant_entitlement(repo, org.owner.id, org.tenant.id, "payments", is_enabled=True)
    with pytest.raises(AuthenticationAbsent):
        set_tenant_entitlement(repo, None, org.tenant.id, "payments", is_enabled=True)
    assert repo.get_entitlement(org.tenant.id, "payments") is None


def test_tenant_entitlement_unknown_module(repo, org, platform_admin):
    with pytest.raises(NotFound) as exc_info:
        set_tenant_entitlement(repo, platform_admin.id, org.tenant.id, "payroll", is_enabled=True)
    assert exc_info.value.resource == "module"


# User overrides

def test_owner_sets_user_override(repo, org):
    set_user_entitlement(repo, org.owner.id, org.tenant.id, org.u1.id, "inventory", False)

    decision = has_module_access(repo, org.u1.id, org.tenant.id, "inventory")
    assert not decision.allowed
    assert decision.reason == AccessReason.USER_OVERRIDE

    set_user_entitlement(repo, org.owner.id, org.tenant.id, org.u1.id, "inventory", True)
    assert has_module_access(repo, org.u1.id, org.tenant.id, "inventory").allowed
    assert len(repo.list_user_entitlements(org.u1.id, org.tenant.id)) == 1

    entry = repo.list_audit(org.tenant.id, action=AuditAction.USER_ENTITLEMENT_UPDATE)[0]
    assert entry.meta["before"] is False
    assert entry.meta["after"] is True


def test_override_cannot_lift_master_switch(repo, org):
    set_user_entitlement(repo, org.owner.id, org.tenant.id, org.u1.id, "payments", True)
    decision = has_module_access(repo, org.u1.id, org.tenant.id, "payments")
    assert decision.reason == AccessReason.MODULE_DISABLED


def test_manager_cannot_set_overrides(repo, org):
    with pytest.raises(AuthorizationDenied):
        set_user_entitlement(repo, org.m1.id, org.tenant.id, org.u1.id, "inventory", False)


def test_override_requires_membership(repo, org, make_tenant, make_user):
    stranger = make_user(make_tenant("Other"), "Stranger")
    with pytest.raises(NotFound) as exc_info:
        set_user_entitlement(repo, org.owner.id, org.tenant.id, stranger.id, "inventory", False)
    assert exc_info.value.resource == "membership"


# Platform roles

def test_grant_and_revoke_platform_role(repo, org, platform_admin):
    grant = grant_platform_role(repo, platform_admin.id, org.m1.id, PlatformRank.PLATFORM_ADMIN)
    again = grant_platform_role(repo, platform_admin.id, org.m1.id, PlatformRank.PLATFORM_ADMIN)
    assert grant.id == again.id
    assert get_platform_level(repo, org.m1.id) == Level.PLATFORM_ADMIN
    assert len(repo.list_audit(org.tenant.id, action=AuditAction.PLATFORM_ROLE_GRANT)) == 1

    assert revoke_platform_role(repo, platform_admin.id, org.m1.id, PlatformRank.PLATFORM_ADMIN)
    assert not revoke_platform_role(repo, platform_admin.id, org.m1.id, PlatformRank.PLATFORM_ADMIN)
    assert get_platform_level(repo, org.m1.id) is None


def test_only_super_admin_manages_super_admin(repo, org, platform_admin, grant_role):
    with pytest.raises(AuthorizationDenied):
        grant_platform_role(repo, platform_admin.id, org.m1.id, PlatformRank.SUPER_ADMIN)

    grant_role(org.owner, PlatformRank.SUPER_ADMIN)
    grant_platform_role(repo, org.owner.id, org.m1.id, PlatformRank.SUPER_ADMIN)
    assert get_platform_level(repo, org.m1.id) == Level.PLATFORM_SUPER


def test_tenant_owner_cannot_grant_platform_roles(repo, org):
    with pytest.raises(AuthorizationDenied):
        grant_platform_role(repo, org.owner.id, org.m1.id, PlatformRank.PLATFORM_ADMIN)


def test_grant_to_unknown_user(repo, org, platform_admin):
    with pytest.raises(NotFound):
        grant_platform_role(repo, platform_admin.id, uuid.uuid4(), PlatformRank.PLATFORM_ADMIN)
