"""
Session tokens, password verification and preview (act-as-user) tokens
"""

from datetime import datetime, timedelta
from jose import JWTError, jwt
from passlib.context import CryptContext
from typing import Dict, Optional, Tuple
import secrets
import uuid

from keystone.core.config import get_settings
from keystone.core.repository import Repository
from keystone.models import AuthSession

settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

PREVIEW_TOKEN_TYPE = "preview"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against its stored hash; malformed hashes never match"""
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        return False


def create_session(
    repo: Repository,
    user_id: uuid.UUID,
    ttl_seconds: Optional[int] = None,
) -> Tuple[str, datetime]:
    """Persist a new opaque session token for a user; the caller commits"""
    token = secrets.token_urlsafe(32)
    ttl = settings.SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
    expires_at = datetime.utcnow() + timedelta(seconds=ttl)

    repo.add(AuthSession(token=token, user_id=user_id, expires_at=expires_at))
    return token, expires_at


def get_session_user_id(repo: Repository, token: Optional[str]) -> Optional[uuid.UUID]:
    """User bound to a session token, if the token is known, unexpired and not revoked"""
    if not token:
        return None
    auth_session = repo.get_auth_session(token)
    if auth_session is None or not auth_session.is_valid():
        return None
    return auth_session.user_id


def revoke_session(repo: Repository, token: Optional[str]) -> bool:
    """Mark a session revoked; returns False when there was nothing to revoke"""
    if not token:
        return False
    auth_session = repo.get_auth_session(token)
    if auth_session is None or auth_session.revoked_at is not None:
        return False
    auth_session.revoked_at = datetime.utcnow()
    repo.add(auth_session)
    return True


def create_preview_token(
    user_id: uuid.UUID,
    operator_id: uuid.UUID,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed token that substitutes the acting identity"""
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.PREVIEW_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(user_id),
        "act": str(operator_id),
        "typ": PREVIEW_TOKEN_TYPE,
        "exp": expire,
        "iat": datetime.utcnow(),
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_preview_token(token: Optional[str]) -> Optional[Dict]:
    """Decode and validate a preview token"""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("typ") != PREVIEW_TOKEN_TYPE:
        return None
    return payload


def preview_user_id(token: Optional[str]) -> Optional[uuid.UUID]:
    """Previewed user id carried by a valid preview token"""
    payload = decode_preview_token(token)
    if payload is None:
        return None
    try:
        return uuid.UUID(payload.get("sub"))
    except (TypeError, ValueError):
        return None


def preview_claims(token: Optional[str]) -> Optional[Tuple[uuid.UUID, uuid.UUID]]:
    """(previewed user id, operator id) carried by a valid preview token"""
    payload = decode_preview_token(token)
    if payload is None:
        return None
    try:
        return uuid.UUID(payload.get("sub")), uuid.UUID(payload.get("act"))
    except (TypeError, ValueError):
        return None
