"""
Audit trail

Audit writes are fire-and-forget: a failing write is logged and never
reaches the caller.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

from sqlalchemy import func
from sqlmodel import Session, select
import structlog

from update_manager.core.dependencies import Actor
from update_manager.core.pagination import Pagination
from update_manager.models.audit_log import AuditAction, AuditLog
from update_manager.models.filters import AuditLogFilter

logger = structlog.get_logger(__name__)


@dataclass
class AuditEntry:
    action: AuditAction
    resource_type: str
    resource_id: str
    user_id: str
    user_email: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_actor(
        cls,
        actor: Actor,
        action: AuditAction,
        resource_type: str,
        resource_id,
        **details
    ) -> "AuditEntry":
        return cls(
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id),
            user_id=actor.user_id,
            user_email=actor.user_email,
            details={k: str(v) if v is not None else None for k, v in details.items()},
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
        )


class AuditSink(Protocol):
    def record(self, entry: AuditEntry) -> None:
        ...


class DatabaseAuditSink:
    """Writes audit entries in their own session so they never join the caller's transaction"""

    def __init__(self, engine):
        self._engine = engine

    def record(self, entry: AuditEntry) -> None:
        try:
            with Session(self._engine) as session:
                session.add(AuditLog(
                    action=entry.action,
                    resource_type=entry.resource_type,
                    resource_id=entry.resource_id,
                    user_id=entry.user_id,
                    user_email=entry.user_email,
                    details=entry.details or None,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                ))
                session.commit()
        except Exception as e:
            logger.warning(
                f"Failed to write audit log for {entry.resource_type} {entry.resource_id}: {e}"
            )


def list_audit_logs(
    session: Session,
    filters: AuditLogFilter,
    pagination: Pagination
) -> Tuple[List[AuditLog], int]:
    """Query audit logs newest first"""
    clauses = filters.clauses()
    total = session.exec(select(func.count()).select_from(AuditLog).where(*clauses)).one()
    rows = session.exec(
        select(AuditLog)
        .where(*clauses)
        .order_by(AuditLog.timestamp.desc())
        .offset(pagination.offset)
        .limit(pagination.limit)
    ).all()
    return list(rows), total
