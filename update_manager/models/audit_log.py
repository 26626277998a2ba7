"""
Audit log model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, DateTime, JSON
from datetime import datetime
from typing import Any, Dict, Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    RELEASE = "release"
    UPLOAD = "upload"
    DOWNLOAD = "download"


class AuditLog(SQLModel, table=True):
    """Append-only record of a mutation or download"""

    __tablename__ = "audit_logs"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    action: AuditAction = Field(index=True)
    resource_type: str = Field(max_length=100, index=True)
    resource_id: str = Field(max_length=255, index=True)
    user_id: str = Field(max_length=255, index=True)
    user_email: Optional[str] = Field(default=None, max_length=255)
    details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    ip_address: Optional[str] = Field(default=None, max_length=100)
    user_agent: Optional[str] = Field(default=None, max_length=1000)
    timestamp: datetime = Field(default_factory=utc_now, index=True, sa_type=DateTime)
