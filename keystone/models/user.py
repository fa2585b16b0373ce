"""
User model scoped to a home tenant
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint
from datetime import datetime
from typing import Optional
import uuid


class User(SQLModel, table=True):
    """User model with tenant isolation"""

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True, description="Home tenant")

    # Profile
    name: str = Field(nullable=False, max_length=150)
    email: str = Field(index=True, nullable=False, max_length=255)

    # Authentication
    password_hash: str = Field(nullable=False)

    # Soft delete marker
    deleted_at: Optional[datetime] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
