"""
Tenant provisioning and lifecycle
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
import uuid

import structlog

from keystone.core.auth import hash_password
from keystone.core.errors import InvariantViolation, NotFound
from keystone.core.repository import Repository
from keystone.models import Membership, MembershipRank, Tenant, TenantStatus, User
from keystone.services.access import require_platform_access
from keystone.services.audit import AuditAction, write_audit

logger = structlog.get_logger(__name__)

# Sentinel for "leave unchanged" where None is a meaningful value
UNSET: Any = object()


@dataclass(frozen=True)
class ProvisionedTenant:
    tenant: Tenant
    owner: User
    membership: Membership


def normalize_email(email: str) -> str:
    return email.strip().lower()


def create_tenant_user(
    repo: Repository,
    tenant_id: uuid.UUID,
    name: str,
    email: str,
    password: str,
) -> User:
    """Stage a user whose home tenant is tenant_id; the caller owns the transaction"""
    email = normalize_email(email)
    if repo.find_user_by_email(tenant_id, email) is not None:
        raise InvariantViolation(InvariantViolation.UNIQUE_EMAIL, tenant_id=tenant_id)

    user = User(
        tenant_id=tenant_id,
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
    )
    repo.add(user)
    repo.flush()
    return user


def create_tenant(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    name: str,
    owner_name: str,
    owner_email: str,
    owner_password: str,
    industry: Optional[str] = None,
    active_until: Optional[datetime] = None,
) -> ProvisionedTenant:
    """Create a tenant together with its owner so it is never ownerless"""
    require_platform_access(repo, actor_id)

    with repo.transaction():
        tenant = Tenant(name=name.strip(), industry=industry, active_until=active_until)
        repo.add(tenant)
        repo.flush()

        owner = create_tenant_user(repo, tenant.id, owner_name, owner_email, owner_password)
        membership = Membership(
            tenant_id=tenant.id,
            user_id=owner.id,
            rank=MembershipRank.TENANT_OWNER,
            is_active=True,
        )
        repo.add(membership)
        repo.flush()

        write_audit(
            repo,
            tenant_id=tenant.id,
            actor_user_id=actor_id,
            action=AuditAction.TENANT_CREATE,
            meta={
                "name": tenant.name,
                "industry": industry,
                "activeUntil": active_until,
                "ownerUserId": owner.id,
            },
            tx=repo.session,
        )

    logger.info(f"Tenant created: {tenant.id}", owner_user_id=str(owner.id))
    return ProvisionedTenant(tenant, owner, membership)


def set_tenant_status(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    status: TenantStatus,
    active_until: Any = UNSET,
) -> Tenant:
    """Suspend or reactivate a tenant, optionally moving its activation expiry"""
    require_platform_access(repo, actor_id)

    with repo.transaction():
        tenant = repo.lock_tenant(tenant_id)
        before: Dict[str, Any] = {"status": tenant.status, "activeUntil": tenant.active_until}

        tenant.status = status
        if active_until is not UNSET:
            tenant.active_until = active_until
        tenant.updated_at = datetime.utcnow()
        repo.add(tenant)
        repo.flush()

        write_audit(
            repo,
            tenant_id=tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.TENANT_STATUS_CHANGED,
            meta={
                "before": before,
                "after": {"status": tenant.status, "activeUntil": tenant.active_until},
            },
            tx=repo.session,
        )

    logger.info(f"Tenant {tenant_id} status set to {status.value}")
    return tenant


def get_tenant_or_404(repo: Repository, tenant_id: uuid.UUID) -> Tenant:
    tenant = repo.get_tenant(tenant_id)
    if tenant is None:
        raise NotFound("tenant", tenant_id)
    return tenant
