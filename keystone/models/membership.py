"""
Membership model: a user's rank and reporting line inside one tenant
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid


class MembershipRank(str, Enum):
    """Tenant-scoped ranks, most senior first"""
    TENANT_OWNER = "TENANT_OWNER"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"


class Membership(SQLModel, table=True):
    """Links a user to a tenant"""

    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", name="uq_memberships_user_tenant"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    rank: MembershipRank = Field(default=MembershipRank.MEMBER, index=True)
    is_active: bool = Field(default=True, index=True)
    supervisor_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="users.id",
        index=True,
        description="Supervising manager; only MEMBER rows carry one",
    )

    # Soft delete marker
    deleted_at: Optional[datetime] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    @property
    def is_live(self) -> bool:
        """Active and not soft-deleted"""
        return self.is_active and self.deleted_at is None
