"""
Access check and module config endpoints
"""

from fastapi import APIRouter, Depends
from typing import Any, Dict, List, Optional
import structlog
import uuid

from keystone.core.dependencies import get_actor_id, get_repository
from keystone.core.repository import Repository
from keystone.schemas.responses import AccessDecisionResponse
from keystone.services.access import has_module_access, list_module_access
from keystone.services.module_config import get_module_config, get_tenant_config

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/{tenant_id}/access", response_model=List[AccessDecisionResponse])
def list_access(
    tenant_id: uuid.UUID,
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
):
    """Decision for every module in the catalog"""
    return [
        AccessDecisionResponse(module_key=module.key, allowed=decision.allowed, reason=decision.reason.value)
        for module, decision in list_module_access(repo, actor_id, tenant_id)
    ]


@router.get("/{tenant_id}/access/{module_key}", response_model=AccessDecisionResponse)
def check_access(
    tenant_id: uuid.UUID,
    module_key: str,
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
):
    """Allow/deny plus reason code; an anonymous caller gets no_role or module_disabled"""
    decision = has_module_access(repo, actor_id, tenant_id, module_key)
    return AccessDecisionResponse(module_key=module_key, allowed=decision.allowed, reason=decision.reason.value)


@router.get("/{tenant_id}/config", response_model=Dict[str, Dict[str, Any]])
def read_tenant_config(
    tenant_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
):
    return get_tenant_config(repo, tenant_id)


@router.get("/{tenant_id}/config/{module_key}", response_model=Dict[str, Any])
def read_module_config(
    tenant_id: uuid.UUID,
    module_key: str,
    repo: Repository = Depends(get_repository),
):
    """Defaults, industry preset and tenant limits merged"""
    return get_module_config(repo, tenant_id, module_key)
