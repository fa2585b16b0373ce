"""
Level classifier

Computes the single authorization level governing a (user, tenant) pair.
Platform ranks are tenant independent and senior to every tenant rank; tenant
ranks come from the user's active, non-deleted membership. At most two indexed
lookups, no graph walk: this runs on every protected request.
"""

from enum import Enum
from typing import Optional
import uuid

from keystone.core.repository import Repository
from keystone.models import MembershipRank, PlatformRank


class Level(str, Enum):
    """Effective authorization rank, most senior first"""
    PLATFORM_SUPER = "PLATFORM_SUPER"
    PLATFORM_ADMIN = "PLATFORM_ADMIN"
    TENANT_OWNER = "TENANT_OWNER"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"

    @property
    def seniority(self) -> int:
        """Lower is more senior"""
        return _SENIORITY[self]

    @property
    def is_platform(self) -> bool:
        return self in (Level.PLATFORM_SUPER, Level.PLATFORM_ADMIN)

    def at_least(self, other: "Level") -> bool:
        return self.seniority <= other.seniority


_SENIORITY = {
    Level.PLATFORM_SUPER: 1,
    Level.PLATFORM_ADMIN: 2,
    Level.TENANT_OWNER: 3,
    Level.MANAGER: 4,
    Level.MEMBER: 5,
}

RANK_TO_LEVEL = {
    MembershipRank.TENANT_OWNER: Level.TENANT_OWNER,
    MembershipRank.MANAGER: Level.MANAGER,
    MembershipRank.MEMBER: Level.MEMBER,
}


def get_platform_level(repo: Repository, user_id: Optional[uuid.UUID]) -> Optional[Level]:
    """Platform level held by the user, SUPER_ADMIN winning over PLATFORM_ADMIN"""
    if user_id is None:
        return None
    ranks = set(repo.platform_ranks(user_id))
    if PlatformRank.SUPER_ADMIN in ranks:
        return Level.PLATFORM_SUPER
    if PlatformRank.PLATFORM_ADMIN in ranks:
        return Level.PLATFORM_ADMIN
    return None


def get_actor_level(
    repo: Repository,
    user_id: Optional[uuid.UUID],
    tenant_id: Optional[uuid.UUID],
) -> Optional[Level]:
    """Level of the user for the tenant, or None when the user has no standing there"""
    if user_id is None:
        return None

    platform_level = get_platform_level(repo, user_id)
    if platform_level is not None:
        return platform_level

    if tenant_id is None:
        return None

    membership = repo.get_live_membership(tenant_id, user_id)
    if membership is None:
        return None
    return RANK_TO_LEVEL[membership.rank]
