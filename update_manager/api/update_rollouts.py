"""
Update rollout API endpoints
"""

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session, SQLModel
from typing import Optional
import structlog

from update_manager.api.deps import audit, get_audit_sink
from update_manager.api.schemas import VersionNumberModel
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor, get_actor, pagination
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.models.audit_log import AuditAction
from update_manager.models.filters import RolloutFilter
from update_manager.models.update_rollout import RolloutStatus
from update_manager.services.audit import AuditSink
from update_manager.services.update_tracking import UpdateTrackingService

logger = structlog.get_logger(__name__)
router = APIRouter()


class RolloutCreate(VersionNumberModel):
    """Schema for starting a rollout"""
    endpoint_id: str
    product_id: str
    from_version: str
    to_version: str


class RolloutStatusUpdate(SQLModel):
    """Schema for moving a rollout to a new status"""
    status: RolloutStatus
    error_message: Optional[str] = None


class RolloutProgressUpdate(SQLModel):
    """Schema for reporting rollout progress (0-100)"""
    progress: int


@router.post("", status_code=status.HTTP_201_CREATED)
def create_rollout(
    rollout_data: RolloutCreate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Create a pending rollout for an endpoint with a detected update"""
    rollout = UpdateTrackingService(session).create_rollout(
        rollout_data.endpoint_id,
        rollout_data.product_id,
        from_version=rollout_data.from_version,
        to_version=rollout_data.to_version,
        initiated_by=actor.user_id,
    )
    audit(
        audit_sink, actor, AuditAction.CREATE, "update_rollout", rollout.id,
        endpoint_id=rollout.endpoint_id, to_version=rollout.to_version
    )
    return success_response(rollout)


@router.get("")
def list_rollouts(
    endpoint_id: Optional[str] = Query(default=None),
    product_id: Optional[str] = Query(default=None),
    status: Optional[RolloutStatus] = Query(default=None),
    page: Pagination = Depends(pagination()),
    session: Session = Depends(get_session)
):
    rollouts, total = UpdateTrackingService(session).list_rollouts(
        RolloutFilter(endpoint_id=endpoint_id, product_id=product_id, status=status), page
    )
    return paginated_response(rollouts, page, total)


@router.get("/{rollout_id}")
def get_rollout(rollout_id: str, session: Session = Depends(get_session)):
    return success_response(UpdateTrackingService(session).get_rollout(rollout_id))


@router.put("/{rollout_id}/status")
def update_rollout_status(
    rollout_id: str,
    status_data: RolloutStatusUpdate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    rollout = UpdateTrackingService(session).update_status(
        rollout_id, status_data.status, status_data.error_message
    )
    audit(audit_sink, actor, AuditAction.UPDATE, "update_rollout", rollout.id, status=rollout.status.value)
    return success_response(rollout)


@router.put("/{rollout_id}/progress")
def update_rollout_progress(
    rollout_id: str,
    progress_data: RolloutProgressUpdate,
    session: Session = Depends(get_session)
):
    """Report rollout progress, rejected outside 0..100"""
    rollout = UpdateTrackingService(session).update_progress(rollout_id, progress_data.progress)
    return success_response(rollout)
