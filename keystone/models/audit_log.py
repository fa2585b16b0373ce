"""
Append-only audit log
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON
from datetime import datetime
from typing import Any, Dict, Optional
import uuid


class AuditLogEntry(SQLModel, table=True):
    """Immutable record of an authorization-relevant mutation"""

    __tablename__ = "audit_log"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(index=True)
    # No foreign key: entries outlive deleted users
    actor_user_id: Optional[uuid.UUID] = Field(default=None, index=True)
    action: str = Field(index=True, max_length=100)
    meta: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
