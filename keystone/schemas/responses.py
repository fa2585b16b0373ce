"""
Response models
"""

from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime
import uuid

from keystone.models import MembershipRank, PlatformRank, TenantStatus


class AccessDecisionResponse(BaseModel):
    """Access check result; only the reason code, never free text"""
    module_key: str
    allowed: bool
    reason: str


class MembershipResponse(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    user_id: uuid.UUID
    rank: MembershipRank
    is_active: bool
    supervisor_id: Optional[uuid.UUID]
    created_at: datetime
    updated_at: Optional[datetime]


class MembershipChangeResponse(BaseModel):
    membership: MembershipResponse
    reassigned_count: int


class UserDeletionResponse(BaseModel):
    user_id: uuid.UUID
    reassigned_count: int


class TenantResponse(BaseModel):
    id: uuid.UUID
    name: str
    status: TenantStatus
    active_until: Optional[datetime]
    industry: Optional[str]
    created_at: datetime


class TenantCreatedResponse(BaseModel):
    tenant: TenantResponse
    owner_user_id: uuid.UUID


class EntitlementResponse(BaseModel):
    module_key: str
    is_enabled: bool
    limits: Optional[Dict[str, Any]]


class TenantEntitlementItem(BaseModel):
    module_key: str
    name: str
    description: Optional[str]
    is_enabled: bool
    limits: Optional[Dict[str, Any]]


class TenantEntitlementsResponse(BaseModel):
    tenant_id: uuid.UUID
    items: List[TenantEntitlementItem]


class UserEntitlementResponse(BaseModel):
    user_id: uuid.UUID
    tenant_id: uuid.UUID
    module_key: str
    is_enabled: bool


class PlatformRoleResponse(BaseModel):
    user_id: uuid.UUID
    role: PlatformRank
    action: str
    changed: bool


class AuditEntryResponse(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    actor_user_id: Optional[uuid.UUID]
    action: str
    meta: Optional[Dict[str, Any]]
    created_at: datetime


class SignInResponse(BaseModel):
    user_id: uuid.UUID
    tenant_id: uuid.UUID
    token: str
    expires_at: datetime


class PreviewResponse(BaseModel):
    user_id: uuid.UUID
    token: str


class MeResponse(BaseModel):
    """Resolved actor; level is present only when a tenant was asked for"""
    user_id: uuid.UUID
    name: str
    email: str
    home_tenant_id: uuid.UUID
    platform_level: Optional[str]
    tenant_id: Optional[uuid.UUID] = None
    level: Optional[str] = None
    previewing: bool = False
