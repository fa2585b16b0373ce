"""
Tenant entitlements and per-user overrides
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON, UniqueConstraint
from datetime import datetime
from typing import Any, Dict, Optional
import uuid


class Entitlement(SQLModel, table=True):
    """Tenant-wide master switch and config limits for a module"""

    __tablename__ = "entitlements"
    __table_args__ = (
        UniqueConstraint("tenant_id", "module_key", name="uq_entitlements_tenant_module"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True)
    module_key: str = Field(foreign_key="modules.key", index=True)
    is_enabled: bool = Field(default=False)
    limits: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    updated_at: Optional[datetime] = None


class UserEntitlement(SQLModel, table=True):
    """Per-user override of a module toggle"""

    __tablename__ = "user_entitlements"
    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", "module_key", name="uq_user_entitlements_user_tenant_module"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True)
    module_key: str = Field(foreign_key="modules.key")
    is_enabled: bool = Field(nullable=False)

    updated_at: Optional[datetime] = None
