"""
Tenant model - Multi-tenancy foundation
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid


class TenantStatus(str, Enum):
    """Lifecycle status of a tenant"""
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class Tenant(SQLModel, table=True):
    """Isolated customer workspace"""

    __tablename__ = "tenants"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    status: TenantStatus = Field(default=TenantStatus.ACTIVE, index=True)
    active_until: Optional[datetime] = Field(default=None, description="Activation expiry")
    industry: Optional[str] = Field(default=None, max_length=50, description="Selects the config preset")

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
