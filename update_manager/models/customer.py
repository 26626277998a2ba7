"""
Customer model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, DateTime, JSON
from datetime import datetime
from typing import Any, Dict, Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class AccountStatus(str, Enum):
    """Account status of a customer"""
    ACTIVE = "active"
    INACTIVE = "inactive"       # Soft deleted
    SUSPENDED = "suspended"


class NotificationPreferences(SQLModel):
    email_enabled: bool = True
    in_app_enabled: bool = True
    uat_notifications: bool = True
    production_notifications: bool = True


class Customer(SQLModel, table=True):
    """Organization that owns tenants and subscriptions"""

    __tablename__ = "customers"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    customer_id: str = Field(max_length=100, unique=True, index=True)
    name: str = Field(max_length=255)
    organization_name: Optional[str] = Field(default=None, max_length=255)
    email: str = Field(max_length=255, unique=True, index=True)
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None, max_length=1000)
    account_status: AccountStatus = Field(default=AccountStatus.ACTIVE, index=True)
    notification_preferences: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column(JSON),
        description="Serialized NotificationPreferences"
    )

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
