"""
Update rollout model with status state machine
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime
from datetime import datetime
from typing import Dict, Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class RolloutStatus(str, Enum):
    """Status of a rollout"""
    PENDING = "pending"             # Created, not started
    IN_PROGRESS = "in_progress"     # Endpoint is applying the update
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


ROLLOUT_TRANSITIONS: Dict[RolloutStatus, frozenset] = {
    RolloutStatus.PENDING: frozenset({
        RolloutStatus.IN_PROGRESS, RolloutStatus.FAILED, RolloutStatus.CANCELLED
    }),
    RolloutStatus.IN_PROGRESS: frozenset({
        RolloutStatus.COMPLETED, RolloutStatus.FAILED, RolloutStatus.CANCELLED
    }),
    RolloutStatus.COMPLETED: frozenset(),
    RolloutStatus.FAILED: frozenset(),
    RolloutStatus.CANCELLED: frozenset(),
}


class UpdateRollout(SQLModel, table=True):
    """Bookkeeping of an update being applied to an endpoint"""

    __tablename__ = "update_rollouts"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    endpoint_id: str = Field(max_length=255, index=True)
    product_id: str = Field(max_length=100, index=True)
    from_version: str = Field(max_length=50)
    to_version: str = Field(max_length=50)
    status: RolloutStatus = Field(default=RolloutStatus.PENDING, index=True)
    progress: int = Field(default=0, ge=0, le=100, description="Percent complete")
    initiated_by: Optional[str] = Field(default=None, max_length=255)
    initiated_at: datetime = Field(default_factory=utc_now, index=True, sa_type=DateTime)
    started_at: Optional[datetime] = Field(default=None, nullable=True, sa_type=DateTime)
    completed_at: Optional[datetime] = Field(default=None, nullable=True, sa_type=DateTime)
    failed_at: Optional[datetime] = Field(default=None, nullable=True, sa_type=DateTime)
    error_message: Optional[str] = Field(default=None, max_length=2000)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)

    def can_transition_to(self, target: RolloutStatus) -> bool:
        return target in ROLLOUT_TRANSITIONS[RolloutStatus(self.status)]

    def can_report_progress(self) -> bool:
        return self.status in (RolloutStatus.PENDING, RolloutStatus.IN_PROGRESS)

    def transition_to(self, target: RolloutStatus, error_message: Optional[str] = None):
        """Move to target status and stamp the matching timestamp"""
        if not self.can_transition_to(target):
            raise ValueError(f"Cannot move rollout from {self.status.value} to {target.value}")

        now = utc_now()
        self.status = target
        if target == RolloutStatus.IN_PROGRESS:
            self.started_at = now
        elif target == RolloutStatus.COMPLETED:
            self.completed_at = now
            self.progress = 100
        elif target == RolloutStatus.FAILED:
            self.failed_at = now
            self.error_message = error_message
        self.updated_at = now
