"""
Request dependencies for FastAPI
"""

from fastapi import Depends, Request
from sqlmodel import Session
from typing import Optional
import uuid
import structlog

from keystone.core.config import get_settings
from keystone.core.database import get_session
from keystone.core.repository import Repository
from keystone.services.audit import request_meta_from_headers
from keystone.services.identity import require_actor, resolve_actor

logger = structlog.get_logger(__name__)
settings = get_settings()


def get_repository(session: Session = Depends(get_session)) -> Repository:
    """Repository over the request session; side-call writes get their own session"""
    bind = session.get_bind()
    return Repository(session, session_factory=lambda: Session(bind))


def get_session_token(request: Request) -> Optional[str]:
    """Session token from the cookie, or a Bearer Authorization header"""
    token = request.cookies.get(settings.SESSION_COOKIE)
    if token:
        return token
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def get_preview_token(request: Request) -> Optional[str]:
    return request.cookies.get(settings.PREVIEW_COOKIE) or request.headers.get(settings.PREVIEW_HEADER)


def get_actor_id(
    request: Request,
    repo: Repository = Depends(get_repository),
) -> Optional[uuid.UUID]:
    """Acting user, or None"""
    return resolve_actor(repo, get_session_token(request), get_preview_token(request))


def require_actor_id(
    request: Request,
    repo: Repository = Depends(get_repository),
) -> uuid.UUID:
    """Acting user; raises AuthenticationAbsent (401) when there is none"""
    actor_id = require_actor(repo, get_session_token(request), get_preview_token(request))
    logger.debug(f"Actor resolved: {actor_id}")
    return actor_id


def get_request_meta(request: Request) -> dict:
    return request_meta_from_headers(request.headers)
