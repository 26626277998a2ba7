"""
License allocation model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class AllocationStatus(str, Enum):
    ACTIVE = "active"
    RELEASED = "released"


class LicenseAllocation(SQLModel, table=True):
    """Seats of a license granted to a tenant, optionally pinned to a deployment"""

    __tablename__ = "license_allocations"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    allocation_id: str = Field(max_length=100, unique=True, index=True)
    license_id: uuid.UUID = Field(foreign_key="licenses.id", index=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True)
    deployment_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="deployments.id",
        index=True,
        nullable=True
    )
    seats_allocated: int = Field(ge=1)
    status: AllocationStatus = Field(default=AllocationStatus.ACTIVE, index=True)
    allocation_date: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    allocated_by: Optional[str] = Field(default=None, max_length=255)
    released_at: Optional[datetime] = Field(default=None, nullable=True, sa_type=DateTime)
    released_by: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None, max_length=2000)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
