"""
Opaque session tokens
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional
import uuid


class AuthSession(SQLModel, table=True):
    """Session token bound to a user"""

    __tablename__ = "auth_sessions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    token: str = Field(unique=True, index=True, max_length=128)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime = Field(index=True)
    revoked_at: Optional[datetime] = None

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Not revoked and not expired"""
        now = now or datetime.utcnow()
        return self.revoked_at is None and self.expires_at > now
