"""
Module catalog
"""

from sqlmodel import Field, SQLModel
from typing import Optional


class Module(SQLModel, table=True):
    """Optional capability area a tenant can be entitled to"""

    __tablename__ = "modules"

    key: str = Field(primary_key=True, max_length=64)
    name: str = Field(max_length=150)
    description: Optional[str] = None
