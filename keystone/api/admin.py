"""
Platform admin API endpoints
"""

from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
import structlog
import uuid

from keystone.core.dependencies import get_actor_id, get_repository
from keystone.core.repository import Repository
from keystone.models import Tenant
from keystone.schemas.commands import (
    EntitlementCommand,
    PlatformRoleCommand,
    TenantCreateCommand,
    TenantStatusCommand,
    UserEntitlementCommand,
    command_body,
)
from keystone.schemas.responses import (
    AuditEntryResponse,
    EntitlementResponse,
    PlatformRoleResponse,
    TenantCreatedResponse,
    TenantEntitlementItem,
    TenantEntitlementsResponse,
    TenantResponse,
    UserEntitlementResponse,
)
from keystone.services.access import require_platform_access
from keystone.services.audit import list_audit
from keystone.services.entitlements import (
    grant_platform_role,
    list_tenant_entitlements,
    revoke_platform_role,
    set_tenant_entitlement,
    set_user_entitlement,
)
from keystone.services.tenants import UNSET, create_tenant, get_tenant_or_404, set_tenant_status

logger = structlog.get_logger(__name__)
router = APIRouter()


def _tenant_response(tenant: Tenant) -> TenantResponse:
    return TenantResponse(
        id=tenant.id,
        name=tenant.name,
        status=tenant.status,
        active_until=tenant.active_until,
        industry=tenant.industry,
        created_at=tenant.created_at,
    )


@router.post("/tenants", response_model=TenantCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_tenant_route(
    command: TenantCreateCommand = Depends(command_body(TenantCreateCommand)),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
):
    """Create a tenant with its owner"""
    provisioned = create_tenant(
        repo,
        actor_id,
        name=command.name,
        owner_name=command.owner_name,
        owner_email=command.owner_email,
        owner_password=command.owner_password,
        industry=command.industry,
        active_until=command.active_until,
    )
    return TenantCreatedResponse(
        tenant=_tenant_response(provisioned.tenant),
        owner_user_id=provisioned.owner.id,
    )


@router.patch("/tenants/{tenant_id}/status", response_model=TenantResponse)
def update_tenant_status(
    tenant_id: uuid.UUID,
    command: TenantStatusCommand = Depends(command_body(TenantStatusCommand)),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
):
    active_until = command.active_until if "active_until" in command.model_fields_set else UNSET
    tenant = set_tenant_status(repo, actor_id, tenant_id, command.status, active_until)
    return _tenant_response(tenant)


@router.get("/tenants/{tenant_id}/entitlements", response_model=TenantEntitlementsResponse)
def get_tenant_entitlements(
    tenant_id: uuid.UUID,
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
):
    """Module catalog joined with the tenant's switches"""
    require_platform_access(repo, actor_id)
    items = [
        TenantEntitlementItem(
            module_key=item.module_key,
            name=item.name,
            description=item.description,
            is_enabled=item.is_enabled,
            limits=item.limits,
        )
        for item in list_tenant_entitlements(repo, tenant_id)
    ]
    return TenantEntitlementsResponse(tenant_id=tenant_id, items=items)


@router.patch("/tenants/{tenant_id}/entitlements", response_model=EntitlementResponse)
def update_tenant_entitlement(
    tenant_id: uuid.UUID,
    command: EntitlementCommand = Depends(command_body(EntitlementCommand)),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
):
    """Toggle a module for the tenant and/or replace its limits"""
    limits = command.limits if "limits" in command.model_fields_set else UNSET
    entitlement = set_tenant_entitlement(
        repo,
        actor_id,
        tenant_id,
        command.module_key,
        is_enabled=command.is_enabled,
        limits=limits,
    )
    return EntitlementResponse(
        module_key=entitlement.module_key,
        is_enabled=entitlement.is_enabled,
        limits=entitlement.limits,
    )


@router.post("/tenants/{tenant_id}/users/{user_id}/entitlements", response_model=UserEntitlementResponse)
def update_user_entitlement(
    tenant_id: uuid.UUID,
    user_id: uuid.UUID,
    command: UserEntitlementCommand = Depends(command_body(UserEntitlementCommand)),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
):
    override = set_user_entitlement(repo, actor_id, tenant_id, user_id, command.module_key, command.is_enabled)
    return UserEntitlementResponse(
        user_id=override.user_id,
        tenant_id=override.tenant_id,
        module_key=override.module_key,
        is_enabled=override.is_enabled,
    )


@router.post("/platform-roles", response_model=PlatformRoleResponse)
def change_platform_role(
    command: PlatformRoleCommand = Depends(command_body(PlatformRoleCommand)),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
):
    """Grant or revoke a platform rank"""
    if command.action == "grant":
        grant_platform_role(repo, actor_id, command.user_id, command.role)
        changed = True
    else:
        changed = revoke_platform_role(repo, actor_id, command.user_id, command.role)
    return PlatformRoleResponse(
        user_id=command.user_id,
        role=command.role,
        action=command.action,
        changed=changed,
    )


@router.get("/tenants/{tenant_id}/audit", response_model=List[AuditEntryResponse])
def get_audit(
    tenant_id: uuid.UUID,
    action: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
):
    """Newest entries first"""
    require_platform_access(repo, actor_id)
    get_tenant_or_404(repo, tenant_id)
    return [
        AuditEntryResponse(
            id=entry.id,
            tenant_id=entry.tenant_id,
            actor_user_id=entry.actor_user_id,
            action=entry.action,
            meta=entry.meta,
            created_at=entry.created_at,
        )
        for entry in list_audit(repo, tenant_id, action=action, limit=limit)
    ]
