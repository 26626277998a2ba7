"""
Update detection model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime, UniqueConstraint
from datetime import datetime
import uuid

from update_manager.core.timeutil import utc_now


class UpdateDetection(SQLModel, table=True):
    """An endpoint reported that a newer version is available"""

    __tablename__ = "update_detections"
    __table_args__ = (
        UniqueConstraint("endpoint_id", "product_id", name="uq_update_detections_endpoint_product"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    endpoint_id: str = Field(max_length=255, index=True)
    product_id: str = Field(max_length=100, index=True)
    current_version: str = Field(max_length=50)
    available_version: str = Field(max_length=50)
    detected_at: datetime = Field(default_factory=utc_now, index=True, sa_type=DateTime)
    last_checked_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
