"""
Upgrade path model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, DateTime, JSON, UniqueConstraint
from datetime import datetime
from typing import List, Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class PathType(str, Enum):
    DIRECT = "direct"
    MULTI_STEP = "multi_step"       # Goes through intermediate_versions
    BLOCKED = "blocked"


class UpgradePath(SQLModel, table=True):
    """Supported (or blocked) route between two versions of a product"""

    __tablename__ = "upgrade_paths"
    __table_args__ = (
        UniqueConstraint("product_id", "from_version", "to_version", name="uq_upgrade_paths_triple"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    product_id: str = Field(max_length=100, index=True)
    from_version: str = Field(max_length=50)
    to_version: str = Field(max_length=50)
    path_type: PathType = Field(default=PathType.DIRECT)
    intermediate_versions: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_blocked: bool = Field(default=False)
    block_reason: Optional[str] = Field(default=None, max_length=1000)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
