"""
Compatibility matrix model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, DateTime, JSON, UniqueConstraint
from datetime import datetime
from typing import List, Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class ValidationStatus(str, Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class CompatibilityMatrix(SQLModel, table=True):
    """Server compatibility constraints of one product version"""

    __tablename__ = "compatibility_matrices"
    __table_args__ = (
        UniqueConstraint("product_id", "version_number", name="uq_compatibility_product_version"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    product_id: str = Field(max_length=100, index=True)
    version_number: str = Field(max_length=50)
    min_server_version: Optional[str] = Field(default=None, max_length=50)
    max_server_version: Optional[str] = Field(default=None, max_length=50)
    recommended_server_version: Optional[str] = Field(default=None, max_length=50)
    incompatible_versions: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    validated_at: Optional[datetime] = Field(default=None, nullable=True, sa_type=DateTime)
    validated_by: Optional[str] = Field(default=None, max_length=255)
    validation_status: ValidationStatus = Field(default=ValidationStatus.PENDING, index=True)
    validation_errors: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
