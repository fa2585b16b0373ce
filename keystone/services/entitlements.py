"""
Entitlement, per-user override and platform-role administration
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
import uuid

import structlog

from keystone.core.errors import AuthorizationDenied, NotFound
from keystone.core.repository import Repository
from keystone.models import Entitlement, PlatformRank, PlatformRole, UserEntitlement
from keystone.services.access import AccessReason, require_platform_access, require_settings_access
from keystone.services.audit import AuditAction, write_audit
from keystone.services.levels import Level
from keystone.services.tenants import UNSET, get_tenant_or_404

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TenantEntitlementView:
    """Catalog entry joined with the tenant's row"""
    module_key: str
    name: str
    description: Optional[str]
    is_enabled: bool
    limits: Optional[Dict[str, Any]]


def list_tenant_entitlements(repo: Repository, tenant_id: uuid.UUID) -> List[TenantEntitlementView]:
    get_tenant_or_404(repo, tenant_id)
    rows = {e.module_key: e for e in repo.list_entitlements(tenant_id)}

    items = []
    for module in repo.list_modules():
        row = rows.get(module.key)
        items.append(
            TenantEntitlementView(
                module_key=module.key,
                name=module.name,
                description=module.description,
                is_enabled=row.is_enabled if row else False,
                limits=row.limits if row else None,
            )
        )
    return items


def set_tenant_entitlement(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    module_key: str,
    is_enabled: Optional[bool] = None,
    limits: Any = UNSET,
) -> Entitlement:
    """Upsert the tenant master switch and/or limits for one module"""
    require_platform_access(repo, actor_id)

    with repo.transaction():
        repo.lock_tenant(tenant_id)
        if repo.get_module(module_key) is None:
            raise NotFound("module", module_key)

        entitlement = repo.get_entitlement(tenant_id, module_key)
        before = None
        if entitlement is None:
            entitlement = Entitlement(
                tenant_id=tenant_id,
                module_key=module_key,
                is_enabled=bool(is_enabled),
                limits=None if limits is UNSET else limits,
            )
        else:
            before = {"isEnabled": entitlement.is_enabled, "limits": entitlement.limits}
            if is_enabled is not None:
                entitlement.is_enabled = is_enabled
            if limits is not UNSET:
                entitlement.limits = limits
        entitlement.updated_at = datetime.utcnow()
        repo.add(entitlement)
        repo.flush()

        write_audit(
            repo,
            tenant_id=tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.ENTITLEMENT_UPDATE,
            meta={
                "moduleKey": module_key,
                "before": before,
                "isEnabled": entitlement.is_enabled,
                "limits": entitlement.limits,
            },
            tx=repo.session,
        )

    logger.info(f"Entitlement {module_key} for {tenant_id}: enabled={entitlement.is_enabled}")
    return entitlement


def set_user_entitlement(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    user_id: uuid.UUID,
    module_key: str,
    is_enabled: bool,
) -> UserEntitlement:
    """Upsert a per-user override; platform levels or the tenant owner"""
    with repo.transaction():
        repo.lock_tenant(tenant_id)
        require_settings_access(repo, actor_id, tenant_id)

        if repo.get_module(module_key) is None:
            raise NotFound("module", module_key)
        if repo.get_membership(tenant_id, user_id) is None:
            raise NotFound("membership", user_id)

        override = repo.get_user_entitlement(user_id, tenant_id, module_key)
        previous = override.is_enabled if override else None
        if override is None:
            override = UserEntitlement(
                user_id=user_id,
                tenant_id=tenant_id,
                module_key=module_key,
                is_enabled=is_enabled,
            )
        else:
            override.is_enabled = is_enabled
        override.updated_at = datetime.utcnow()
        repo.add(override)
        repo.flush()

        write_audit(
            repo,
            tenant_id=tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.USER_ENTITLEMENT_UPDATE,
            meta={
                "targetUserId": user_id,
                "moduleKey": module_key,
                "before": previous,
                "after": is_enabled,
            },
            tx=repo.session,
        )

    logger.info(f"User override {module_key} for {user_id} in {tenant_id}: {is_enabled}")
    return override


# ----------------------------------------------------------------------
# Platform roles
# ----------------------------------------------------------------------

def _authorize_role_admin(repo: Repository, actor_id: Optional[uuid.UUID], role: PlatformRank) -> Level:
    """Only SUPER_ADMIN manages SUPER_ADMIN; either platform rank manages PLATFORM_ADMIN"""
    level = require_platform_access(repo, actor_id)
    if role == PlatformRank.SUPER_ADMIN and level != Level.PLATFORM_SUPER:
        raise AuthorizationDenied(AccessReason.NO_ROLE)
    return level


def grant_platform_role(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    user_id: uuid.UUID,
    role: PlatformRank,
) -> PlatformRole:
    """Idempotent grant"""
    _authorize_role_admin(repo, actor_id, role)

    with repo.transaction():
        user = repo.get_user(user_id)
        if user is None or user.deleted_at is not None:
            raise NotFound("user", user_id)

        existing = repo.get_platform_role(user_id, role)
        if existing is not None:
            return existing

        grant = PlatformRole(user_id=user_id, role=role)
        repo.add(grant)
        repo.flush()

        write_audit(
            repo,
            tenant_id=user.tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.PLATFORM_ROLE_GRANT,
            meta={"targetUserId": user_id, "role": role},
            tx=repo.session,
        )

    logger.info(f"Platform role {role.value} granted to {user_id}")
    return grant


def revoke_platform_role(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    user_id: uuid.UUID,
    role: PlatformRank,
) -> bool:
    """Returns False when the user did not hold the role"""
    _authorize_role_admin(repo, actor_id, role)

    with repo.transaction():
        user = repo.get_user(user_id)
        if user is None:
            raise NotFound("user", user_id)

        existing = repo.get_platform_role(user_id, role)
        if existing is None:
            return False

        repo.delete(existing)
        repo.flush()

        write_audit(
            repo,
            tenant_id=user.tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.PLATFORM_ROLE_REVOKE,
            meta={"targetUserId": user_id, "role": role},
            tx=repo.session,
        )

    logger.info(f"Platform role {role.value} revoked from {user_id}")
    return True
