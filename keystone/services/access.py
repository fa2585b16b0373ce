"""
Entitlement resolver and access guards

Module access is a three-tier policy:
1. tenant master switch: an absent or disabled Entitlement denies everyone;
2. role bypass: platform levels and the tenant owner are always allowed;
3. per-user override for managers and members, open by default.
An actor with no level in the tenant is denied.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
import uuid

import structlog

from keystone.core.errors import AuthenticationAbsent, AuthorizationDenied
from keystone.core.repository import Repository
from keystone.models import Entitlement, UserEntitlement
from keystone.services.levels import Level, get_actor_level

logger = structlog.get_logger(__name__)


class AccessReason(str, Enum):
    """Machine-readable reason attached to every decision"""
    MODULE_DISABLED = "module_disabled"
    ROLE_BYPASS = "role_bypass"
    USER_OVERRIDE = "user_override"
    TENANT_DEFAULT = "tenant_default"
    NO_ROLE = "no_role"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: AccessReason

    @classmethod
    def allow(cls, reason: AccessReason) -> "AccessDecision":
        return cls(True, reason)

    @classmethod
    def deny(cls, reason: AccessReason) -> "AccessDecision":
        return cls(False, reason)


BYPASS_LEVELS = frozenset({Level.PLATFORM_SUPER, Level.PLATFORM_ADMIN, Level.TENANT_OWNER})


def decide_module_access(
    entitlement: Optional[Entitlement],
    level: Optional[Level],
    user_override: Optional[UserEntitlement],
) -> AccessDecision:
    """Pure decision over the tenant row, the actor level and the user override"""
    if entitlement is None or not entitlement.is_enabled:
        return AccessDecision.deny(AccessReason.MODULE_DISABLED)

    if level is None:
        return AccessDecision.deny(AccessReason.NO_ROLE)

    if level in BYPASS_LEVELS:
        return AccessDecision.allow(AccessReason.ROLE_BYPASS)

    # MANAGER and MEMBER
    if user_override is not None:
        return AccessDecision(user_override.is_enabled, AccessReason.USER_OVERRIDE)
    return AccessDecision.allow(AccessReason.TENANT_DEFAULT)


def has_module_access(
    repo: Repository,
    user_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    module_key: str,
) -> AccessDecision:
    """Load the decision inputs and decide, short-circuiting on the master switch"""
    entitlement = repo.get_entitlement(tenant_id, module_key)
    if entitlement is None or not entitlement.is_enabled:
        decision = AccessDecision.deny(AccessReason.MODULE_DISABLED)
    else:
        level = get_actor_level(repo, user_id, tenant_id)
        user_override = None
        if level in (Level.MANAGER, Level.MEMBER):
            user_override = repo.get_user_entitlement(user_id, tenant_id, module_key)
        decision = decide_module_access(entitlement, level, user_override)

    logger.debug(
        f"Module access {module_key}: {decision.reason.value}",
        user_id=str(user_id) if user_id else None,
        tenant_id=str(tenant_id),
        allowed=decision.allowed,
    )
    return decision


def require_module_access(
    repo: Repository,
    user_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    module_key: str,
) -> AccessDecision:
    """Raise AuthorizationDenied carrying the reason unless access is allowed"""
    decision = has_module_access(repo, user_id, tenant_id, module_key)
    if not decision.allowed:
        logger.info(f"Module access denied: {module_key} ({decision.reason.value})")
        raise AuthorizationDenied(decision.reason)
    return decision


def list_module_access(
    repo: Repository,
    user_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
) -> List[tuple]:
    """(module, decision) for every module in the catalog"""
    return [
        (module, has_module_access(repo, user_id, tenant_id, module.key))
        for module in repo.list_modules()
    ]


def require_settings_access(
    repo: Repository,
    user_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
) -> Level:
    """Tenant settings are for platform levels and the tenant owner"""
    if user_id is None:
        raise AuthenticationAbsent()
    level = get_actor_level(repo, user_id, tenant_id)
    if level is None or not level.at_least(Level.TENANT_OWNER):
        raise AuthorizationDenied(AccessReason.NO_ROLE)
    return level


def require_platform_access(
    repo: Repository,
    user_id: Optional[uuid.UUID],
    minimum: Level = Level.PLATFORM_ADMIN,
) -> Level:
    """Admin area: platform levels only"""
    if user_id is None:
        raise AuthenticationAbsent()
    level = get_actor_level(repo, user_id, None)
    if level is None or not level.is_platform or not level.at_least(minimum):
        raise AuthorizationDenied(AccessReason.NO_ROLE)
    return level
