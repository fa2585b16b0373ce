"""
Identity resolver

Maps the request's session token and optional preview token to the acting
user. A valid preview wins over the real session so an operator previewing as
someone else never silently falls back to their own identity.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
import uuid

import structlog

from keystone.core.auth import (
    create_preview_token,
    create_session,
    get_session_user_id,
    preview_claims,
    revoke_session,
    verify_password,
)
from keystone.core.errors import AuthenticationAbsent, AuthorizationDenied, NotFound
from keystone.core.repository import Repository
from keystone.models import User
from keystone.services.access import AccessReason, require_platform_access
from keystone.services.audit import AuditAction, write_audit
from keystone.services.levels import Level, get_platform_level
from keystone.services.tenants import normalize_email

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SignIn:
    user: User
    token: str
    expires_at: datetime


def _live_user_id(repo: Repository, user_id: Optional[uuid.UUID]) -> Optional[uuid.UUID]:
    if user_id is None:
        return None
    user = repo.get_user(user_id)
    if user is None or user.deleted_at is not None:
        return None
    return user.id


def may_preview(operator_level: Optional[Level], target_level: Optional[Level]) -> bool:
    """Operators preview only users they are at least as senior as"""
    if operator_level is None or not operator_level.is_platform:
        return False
    return target_level is None or operator_level.at_least(target_level)


def _previewed_user_id(repo: Repository, preview_token: Optional[str]) -> Optional[uuid.UUID]:
    claims = preview_claims(preview_token)
    if claims is None:
        return None
    user_id, operator_id = claims

    previewed = _live_user_id(repo, user_id)
    operator = _live_user_id(repo, operator_id)
    if previewed is None or operator is None:
        return None
    # The operator's standing is re-checked on every request
    if not may_preview(get_platform_level(repo, operator), get_platform_level(repo, previewed)):
        logger.info("Preview token ignored", operator_id=str(operator_id), user_id=str(user_id))
        return None
    return previewed


def resolve_actor(
    repo: Repository,
    session_token: Optional[str],
    preview_token: Optional[str] = None,
) -> Optional[uuid.UUID]:
    """Acting user id, or None; never raises for bad or missing tokens"""
    previewed = _previewed_user_id(repo, preview_token)
    if previewed is not None:
        return previewed
    return get_session_user_id(repo, session_token)


def require_actor(
    repo: Repository,
    session_token: Optional[str],
    preview_token: Optional[str] = None,
) -> uuid.UUID:
    actor_id = resolve_actor(repo, session_token, preview_token)
    if actor_id is None:
        raise AuthenticationAbsent()
    return actor_id


def authenticate(
    repo: Repository,
    tenant_id: uuid.UUID,
    email: str,
    password: str,
    request_meta: Optional[Dict[str, Any]] = None,
) -> SignIn:
    """Verify credentials and open a session

    Unknown email, wrong password and deleted user fail identically.
    """
    user = repo.find_user_by_email(tenant_id, normalize_email(email))
    if user is None or user.deleted_at is not None or not verify_password(password, user.password_hash):
        logger.info("Sign-in failed", tenant_id=str(tenant_id))
        raise AuthenticationAbsent("invalid credentials")

    with repo.transaction():
        token, expires_at = create_session(repo, user.id)

    write_audit(
        repo,
        tenant_id=user.tenant_id,
        actor_user_id=user.id,
        action=AuditAction.SIGN_IN,
        request_meta=request_meta,
    )
    logger.info(f"User signed in: {user.id}")
    return SignIn(user, token, expires_at)


def sign_out(
    repo: Repository,
    session_token: Optional[str],
    request_meta: Optional[Dict[str, Any]] = None,
) -> bool:
    """Revoke the session; False when there was no live session to revoke"""
    user_id = get_session_user_id(repo, session_token)
    with repo.transaction():
        revoked = revoke_session(repo, session_token)

    if revoked and user_id is not None:
        user = repo.get_user(user_id)
        if user is not None:
            write_audit(
                repo,
                tenant_id=user.tenant_id,
                actor_user_id=user_id,
                action=AuditAction.SIGN_OUT,
                request_meta=request_meta,
            )
    return revoked


def start_preview(
    repo: Repository,
    operator_id: Optional[uuid.UUID],
    user_id: uuid.UUID,
    request_meta: Optional[Dict[str, Any]] = None,
) -> str:
    """Issue a preview token for a platform operator acting as another user"""
    operator_level = require_platform_access(repo, operator_id)

    user = repo.get_user(user_id)
    if user is None or user.deleted_at is not None:
        raise NotFound("user", user_id)
    if not may_preview(operator_level, get_platform_level(repo, user.id)):
        raise AuthorizationDenied(AccessReason.NO_ROLE)

    token = create_preview_token(user.id, operator_id)
    write_audit(
        repo,
        tenant_id=user.tenant_id,
        actor_user_id=operator_id,
        action=AuditAction.PREVIEW_START,
        meta={"previewUserId": user.id},
        request_meta=request_meta,
    )
    logger.info(f"Preview started: {operator_id} as {user.id}")
    return token
