"""
Platform role model (tenant independent)
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint
from datetime import datetime
from enum import Enum
import uuid


class PlatformRank(str, Enum):
    """Platform ranks, most senior first"""
    SUPER_ADMIN = "SUPER_ADMIN"
    PLATFORM_ADMIN = "PLATFORM_ADMIN"


class PlatformRole(SQLModel, table=True):
    """Grants a platform rank to a user"""

    __tablename__ = "platform_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_platform_roles_user_role"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    role: PlatformRank = Field(nullable=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
