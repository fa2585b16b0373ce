"""
Config merge pipeline

Effective module configuration = defaults <- industry preset <- tenant limits.
Later layers win key by key at every depth; lists and scalars are replaced
wholesale. Read-only, evaluated on every call.
"""

from typing import Any, Dict, Optional
import copy
import uuid

import structlog

from keystone.core.errors import NotFound
from keystone.core.repository import Repository
from keystone.services.presets import DEFAULTS, PRESETS

logger = structlog.get_logger(__name__)


def deep_merge(base: Any, override: Any) -> Any:
    """Merge override onto base without mutating either"""
    if override is None:
        return copy.deepcopy(base)
    if not isinstance(base, dict) or not isinstance(override, dict):
        return copy.deepcopy(override)

    merged = copy.deepcopy(base)
    for key, value in override.items():
        merged[key] = deep_merge(base.get(key), value)
    return merged


def get_preset(industry: Optional[str], module_key: str) -> Optional[Dict[str, Any]]:
    """Preset layer for the module, or None when the industry is unset or unknown"""
    if not industry:
        return None
    return PRESETS.get(industry, {}).get(module_key)


def merge_layers(
    module_key: str,
    industry: Optional[str] = None,
    limits: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    merged = deep_merge(DEFAULTS.get(module_key), get_preset(industry, module_key))
    merged = deep_merge(merged, limits)
    return merged if merged is not None else {}


def get_module_config(repo: Repository, tenant_id: uuid.UUID, module_key: str) -> Dict[str, Any]:
    """Merged configuration for one module of a tenant"""
    tenant = repo.get_tenant(tenant_id)
    if tenant is None:
        raise NotFound("tenant", tenant_id)

    entitlement = repo.get_entitlement(tenant_id, module_key)
    limits = entitlement.limits if entitlement is not None else None
    return merge_layers(module_key, tenant.industry, limits)


def get_tenant_config(repo: Repository, tenant_id: uuid.UUID) -> Dict[str, Dict[str, Any]]:
    """Merged configuration for every module known to the defaults, presets or tenant rows"""
    tenant = repo.get_tenant(tenant_id)
    if tenant is None:
        raise NotFound("tenant", tenant_id)

    limits_by_module = {e.module_key: e.limits for e in repo.list_entitlements(tenant_id)}
    keys = set(DEFAULTS) | set(PRESETS.get(tenant.industry or "", {})) | set(limits_by_module)

    return {
        key: merge_layers(key, tenant.industry, limits_by_module.get(key))
        for key in sorted(keys)
    }
