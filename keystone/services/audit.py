"""
Audit trail writer

Two modes:
- with ``tx`` (a session inside the caller's open transaction) the entry joins
  that transaction, so a rolled-back mutation leaves no audit row and a failed
  write fails the mutation;
- without ``tx`` the entry is written in its own short session as a
  best-effort side call; any failure is logged and swallowed.
"""

from typing import Any, Dict, List, Optional
import json
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
import structlog

from keystone.core.errors import AuditWriteFailure
from keystone.core.repository import Repository
from keystone.models import AuditLogEntry

logger = structlog.get_logger(__name__)


class AuditAction:
    """Normalized action names"""
    USER_CREATE = "user.create"
    USER_UPDATE = "user.update"
    USER_DELETE = "user.delete"
    USER_SUPERVISOR_SET = "user.supervisor.set"
    USER_SUPERVISOR_REASSIGNED = "user.supervisor.reassigned_on_deactivate"
    USER_ENTITLEMENT_UPDATE = "user.entitlement.update"
    ENTITLEMENT_UPDATE = "entitlement.update"
    PLATFORM_ROLE_GRANT = "platform_role.grant"
    PLATFORM_ROLE_REVOKE = "platform_role.revoke"
    OWNERSHIP_TRANSFER = "tenant.ownership.transfer"
    TENANT_CREATE = "tenant.create"
    TENANT_STATUS_CHANGED = "tenant.status.changed"
    SIGN_IN = "auth.sign_in"
    SIGN_OUT = "auth.sign_out"
    PREVIEW_START = "preview.start"


def _encode_meta(
    meta: Optional[Dict[str, Any]],
    request_meta: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    """Normalize meta to plain JSON data (ids, enums and dates become strings)"""
    if meta is None and not request_meta:
        return None
    payload: Dict[str, Any] = dict(meta or {})
    if request_meta:
        payload["_req"] = request_meta
    return json.loads(json.dumps(payload, default=str))


def request_meta_from_headers(headers) -> Dict[str, Optional[str]]:
    """Best-effort client details for audit meta"""
    ip = headers.get("x-forwarded-for") or headers.get("x-real-ip")
    return {"ip": ip, "user_agent": headers.get("user-agent")}


def write_audit(
    repo: Repository,
    *,
    tenant_id: uuid.UUID,
    actor_user_id: Optional[uuid.UUID],
    action: str,
    meta: Optional[Dict[str, Any]] = None,
    request_meta: Optional[Dict[str, Any]] = None,
    tx: Optional[Session] = None,
) -> Optional[AuditLogEntry]:
    """Append one audit entry"""
    if tx is not None:
        entry = AuditLogEntry(
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            action=action,
            meta=_encode_meta(meta, request_meta),
        )
        tx.add(entry)
        tx.flush()
        return entry

    try:
        entry = AuditLogEntry(
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            action=action,
            meta=_encode_meta(meta, request_meta),
        )
        if repo.session_factory is None:
            raise AuditWriteFailure("no session factory for side-call audit writes")
        with repo.session_factory() as side_session:
            side_session.add(entry)
            side_session.commit()
            side_session.refresh(entry)
        return entry
    except (SQLAlchemyError, AuditWriteFailure, TypeError, ValueError) as e:
        logger.warning("audit_write_failed", tenant_id=str(tenant_id), action=action, error=str(e))
        return None


def list_audit(
    repo: Repository,
    tenant_id: uuid.UUID,
    action: Optional[str] = None,
    limit: int = 100,
) -> List[AuditLogEntry]:
    """Newest entries first"""
    return repo.list_audit(tenant_id, action=action, limit=limit)
