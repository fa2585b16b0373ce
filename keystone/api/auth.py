"""
Authentication API endpoints: sign-in, sign-out, preview, current actor
"""

from fastapi import APIRouter, Depends, Request, Response
from typing import Optional
import structlog
import uuid

from keystone.core.auth import get_session_user_id, preview_user_id
from keystone.core.config import get_settings
from keystone.core.dependencies import (
    get_preview_token,
    get_repository,
    get_request_meta,
    get_session_token,
    require_actor_id,
)
from keystone.core.errors import NotFound
from keystone.core.repository import Repository
from keystone.schemas.commands import PreviewCommand, SignInCommand, command_body
from keystone.schemas.responses import MeResponse, PreviewResponse, SignInResponse
from keystone.services.identity import authenticate, sign_out, start_preview
from keystone.services.levels import get_actor_level, get_platform_level

logger = structlog.get_logger(__name__)
router = APIRouter()
settings = get_settings()


@router.post("/sign-in", response_model=SignInResponse)
def sign_in(
    response: Response,
    command: SignInCommand = Depends(command_body(SignInCommand)),
    repo: Repository = Depends(get_repository),
    request_meta: dict = Depends(get_request_meta),
):
    """Open a session and set the session cookie"""
    result = authenticate(repo, command.tenant_id, command.email, command.password, request_meta)
    response.set_cookie(
        settings.SESSION_COOKIE,
        result.token,
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        path="/",
    )
    return SignInResponse(
        user_id=result.user.id,
        tenant_id=result.user.tenant_id,
        token=result.token,
        expires_at=result.expires_at,
    )


@router.post("/sign-out")
def sign_out_route(
    request: Request,
    response: Response,
    repo: Repository = Depends(get_repository),
    request_meta: dict = Depends(get_request_meta),
):
    """Revoke the current session and clear the cookie"""
    revoked = sign_out(repo, get_session_token(request), request_meta)
    response.delete_cookie(settings.SESSION_COOKIE, path="/")
    return {"ok": True, "revoked": revoked}


@router.post("/preview", response_model=PreviewResponse)
def start_preview_route(
    request: Request,
    response: Response,
    command: PreviewCommand = Depends(command_body(PreviewCommand)),
    repo: Repository = Depends(get_repository),
    request_meta: dict = Depends(get_request_meta),
):
    """Act as another user; the operator is always the real session user"""
    operator_id = get_session_user_id(repo, get_session_token(request))
    token = start_preview(repo, operator_id, command.user_id, request_meta)
    response.set_cookie(
        settings.PREVIEW_COOKIE,
        token,
        max_age=settings.PREVIEW_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        path="/",
    )
    return PreviewResponse(user_id=command.user_id, token=token)


@router.delete("/preview")
def clear_preview(response: Response):
    """Drop the preview cookie; the real session is untouched"""
    response.delete_cookie(settings.PREVIEW_COOKIE, path="/")
    return {"ok": True}


@router.get("/me", response_model=MeResponse)
def me(
    request: Request,
    tenant_id: Optional[uuid.UUID] = None,
    actor_id: uuid.UUID = Depends(require_actor_id),
    repo: Repository = Depends(get_repository),
):
    """Resolved actor, with its level in a tenant when one is given"""
    user = repo.get_user(actor_id)
    if user is None:
        raise NotFound("user", actor_id)

    platform_level = get_platform_level(repo, actor_id)
    level = get_actor_level(repo, actor_id, tenant_id) if tenant_id else None
    return MeResponse(
        user_id=user.id,
        name=user.name,
        email=user.email,
        home_tenant_id=user.tenant_id,
        platform_level=platform_level.value if platform_level else None,
        tenant_id=tenant_id,
        level=level.value if level else None,
        previewing=preview_user_id(get_preview_token(request)) == actor_id,
    )
