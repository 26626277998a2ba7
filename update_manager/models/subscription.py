"""
Subscription model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class Subscription(SQLModel, table=True):
    """Commercial agreement of a customer, groups licenses"""

    __tablename__ = "subscriptions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    subscription_id: str = Field(max_length=100, unique=True, index=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", index=True)
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    start_date: datetime = Field(sa_type=DateTime)
    end_date: Optional[datetime] = Field(default=None, nullable=True, sa_type=DateTime)
    status: SubscriptionStatus = Field(default=SubscriptionStatus.ACTIVE, index=True)
    created_by: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None, max_length=2000)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)

    def is_past_end(self, now: datetime) -> bool:
        return self.end_date is not None and self.end_date < now
