"""
Unit tests for the level classifier
"""

import uuid

from keystone.models import MembershipRank, PlatformRank
from keystone.services.levels import Level, get_actor_level, get_platform_level


def test_level_ordering():
    """Platform levels are senior to every tenant level"""
    assert Level.PLATFORM_SUPER.at_least(Level.PLATFORM_ADMIN)
    assert Level.PLATFORM_ADMIN.at_least(Level.TENANT_OWNER)
    assert Level.TENANT_OWNER.at_least(Level.MANAGER)
    assert Level.MANAGER.at_least(Level.MEMBER)
    assert not Level.MEMBER.at_least(Level.MANAGER)
    assert Level.PLATFORM_ADMIN.is_platform
    assert not Level.TENANT_OWNER.is_platform


def test_membership_rank_maps_to_level(repo, org):
    assert get_actor_level(repo, org.owner.id, org.tenant.id) == Level.TENANT_OWNER
    assert get_actor_level(repo, org.m1.id, org.tenant.id) == Level.MANAGER
    assert get_actor_level(repo, org.u1.id, org.tenant.id) == Level.MEMBER


def test_platform_role_wins_over_membership(repo, org, grant_role):
    grant_role(org.u1, PlatformRank.PLATFORM_ADMIN)
    assert get_actor_level(repo, org.u1.id, org.tenant.id) == Level.PLATFORM_ADMIN


def test_super_admin_wins_over_platform_admin(repo, org, grant_role):
    grant_role(org.m1, PlatformRank.PLATFORM_ADMIN)
    grant_role(org.m1, PlatformRank.SUPER_ADMIN)
    assert get_platform_level(repo, org.m1.id) == Level.PLATFORM_SUPER


def test_platform_level_is_tenant_independent(repo, org, make_tenant, grant_role):
    other = make_tenant("Nile Supplies")
    grant_role(org.u2, PlatformRank.SUPER_ADMIN)
    assert get_actor_level(repo, org.u2.id, other.id) == Level.PLATFORM_SUPER
    assert get_actor_level(repo, org.u2.id, None) == Level.PLATFORM_SUPER


def test_no_membership_means_no_level(repo, org, make_tenant):
    other = make_tenant("Nile Supplies")
    assert get_actor_level(repo, org.u1.id, other.id) is None
    assert get_actor_level(repo, None, org.tenant.id) is None
    assert get_actor_level(repo, uuid.uuid4(), org.tenant.id) is None


def test_inactive_membership_has_no_level(repo, db, org, make_user, make_membership):
    user = make_user(org.tenant, "Gone")
    make_membership(org.tenant, user, MembershipRank.MANAGER, is_active=False)
    assert get_actor_level(repo, user.id, org.tenant.id) is None


def test_soft_deleted_membership_has_no_level(repo, db, org):
    from datetime import datetime

    membership = repo.get_membership(org.tenant.id, org.u3.id)
    membership.deleted_at = datetime.utcnow()
    db.add(membership)
    db.commit()

    assert get_actor_level(repo, org.u3.id, org.tenant.id) is None
