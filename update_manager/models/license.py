"""
License model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class LicenseType(str, Enum):
    PERPETUAL = "perpetual"
    TIME_BASED = "time_based"     # Requires end_date


class LicenseStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class License(SQLModel, table=True):
    """Seat pool for one product under a subscription"""

    __tablename__ = "licenses"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    license_id: str = Field(max_length=100, unique=True, index=True)
    subscription_id: uuid.UUID = Field(foreign_key="subscriptions.id", index=True)
    product_id: str = Field(max_length=100, index=True)
    license_type: LicenseType
    number_of_seats: int = Field(ge=0, description="Seat capacity")
    start_date: datetime = Field(sa_type=DateTime)
    end_date: Optional[datetime] = Field(default=None, nullable=True, sa_type=DateTime)
    status: LicenseStatus = Field(default=LicenseStatus.ACTIVE, index=True)
    assigned_by: Optional[str] = Field(default=None, max_length=255)
    assignment_date: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    notes: Optional[str] = Field(default=None, max_length=2000)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)

    def is_time_based(self) -> bool:
        return self.license_type == LicenseType.TIME_BASED

    def is_expired_at(self, now: datetime) -> bool:
        """A time based license is expired once end_date is not in the future"""
        return self.is_time_based() and (self.end_date is None or self.end_date <= now)
