"""
Deployment model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime, UniqueConstraint
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class DeploymentType(str, Enum):
    """Environment a deployment serves"""
    PRODUCTION = "production"
    UAT = "uat"
    TESTING = "testing"
    DEVELOPMENT = "development"


class DeploymentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Deployment(SQLModel, table=True):
    """An installation of a product inside a tenant"""

    __tablename__ = "deployments"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "product_id", "deployment_type",
            name="uq_deployments_tenant_product_type"
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    deployment_id: str = Field(max_length=100, unique=True, index=True)
    tenant_id: uuid.UUID = Field(
        foreign_key="tenants.id",
        index=True,
        description="Owning tenant"
    )
    product_id: str = Field(max_length=100, index=True, description="Business id of the deployed product")
    deployment_type: DeploymentType = Field(index=True)
    installed_version: str = Field(max_length=50, description="Currently installed version number")
    number_of_users: Optional[int] = Field(default=None, ge=0)
    license_info: Optional[str] = Field(default=None, max_length=1000)
    server_hostname: Optional[str] = Field(default=None, max_length=255)
    environment_details: Optional[str] = Field(default=None, max_length=2000)
    deployment_date: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    status: DeploymentStatus = Field(default=DeploymentStatus.ACTIVE, index=True)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
