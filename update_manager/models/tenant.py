"""
Tenant model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class TenantStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Tenant(SQLModel, table=True):
    """A customer environment grouping deployments"""

    __tablename__ = "tenants"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: str = Field(max_length=100, unique=True, index=True)
    customer_id: uuid.UUID = Field(
        foreign_key="customers.id",
        index=True,
        description="Owning customer"
    )
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: TenantStatus = Field(default=TenantStatus.ACTIVE, index=True)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
