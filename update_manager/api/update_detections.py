"""
Update detection API endpoints
"""

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session
from typing import Optional
import structlog

from update_manager.api.deps import audit, get_audit_sink
from update_manager.api.schemas import VersionNumberModel
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor, get_actor, pagination
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.models.audit_log import AuditAction
from update_manager.models.filters import DetectionFilter
from update_manager.services.audit import AuditSink
from update_manager.services.update_tracking import UpdateTrackingService

logger = structlog.get_logger(__name__)
router = APIRouter()


class DetectionReport(VersionNumberModel):
    """Schema for reporting an available update on an endpoint"""
    endpoint_id: str
    product_id: str
    current_version: str
    available_version: str


class DetectionUpdate(VersionNumberModel):
    """Schema for changing the available version of a detection"""
    available_version: str


@router.post("", status_code=status.HTTP_201_CREATED)
def report_detection(
    detection_data: DetectionReport,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Record that an endpoint can update a product; repeated reports refresh the record"""
    detection = UpdateTrackingService(session).report_detection(
        detection_data.endpoint_id,
        detection_data.product_id,
        current_version=detection_data.current_version,
        available_version=detection_data.available_version,
    )
    audit(
        audit_sink, actor, AuditAction.CREATE, "update_detection", detection.id,
        endpoint_id=detection.endpoint_id, available_version=detection.available_version
    )
    return success_response(detection)


@router.get("")
def list_detections(
    endpoint_id: Optional[str] = Query(default=None),
    product_id: Optional[str] = Query(default=None),
    page: Pagination = Depends(pagination()),
    session: Session = Depends(get_session)
):
    detections, total = UpdateTrackingService(session).list_detections(
        DetectionFilter(endpoint_id=endpoint_id, product_id=product_id), page
    )
    return paginated_response(detections, page, total)


@router.get("/{endpoint_id}/{product_id}")
def get_detection(endpoint_id: str, product_id: str, session: Session = Depends(get_session)):
    return success_response(UpdateTrackingService(session).get_detection(endpoint_id, product_id))


@router.put("/{endpoint_id}/{product_id}")
def update_detection(
    endpoint_id: str,
    product_id: str,
    detection_data: DetectionUpdate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    detection = UpdateTrackingService(session).update_available_version(
        endpoint_id, product_id, detection_data.available_version
    )
    audit(
        audit_sink, actor, AuditAction.UPDATE, "update_detection", detection.id,
        available_version=detection.available_version
    )
    return success_response(detection)
