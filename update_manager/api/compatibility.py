"""
Compatibility matrix API endpoints
"""

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, SQLModel
from typing import List, Optional
import structlog

from update_manager.api.deps import audit, get_audit_sink
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor, get_actor, pagination
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.models.audit_log import AuditAction
from update_manager.models.compatibility import ValidationStatus
from update_manager.models.filters import CompatibilityFilter
from update_manager.services.audit import AuditSink
from update_manager.services.compatibility import CompatibilityService

logger = structlog.get_logger(__name__)
router = APIRouter()


class CompatibilityValidate(SQLModel):
    """Schema for storing the compatibility matrix of a version"""
    min_server_version: Optional[str] = None
    max_server_version: Optional[str] = None
    recommended_server_version: Optional[str] = None
    incompatible_versions: List[str] = []


@router.post("/products/{product_id}/versions/{version_number}/compatibility")
def validate_compatibility(
    product_id: str,
    version_number: str,
    matrix_data: CompatibilityValidate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Store the compatibility matrix of a version and mark it validated"""
    matrix = CompatibilityService(session).validate(
        product_id,
        version_number,
        validated_by=actor.user_id,
        **matrix_data.model_dump()
    )
    audit(
        audit_sink, actor, AuditAction.UPDATE, "compatibility", matrix.id,
        product_id=matrix.product_id, version_number=version_number
    )
    return success_response(matrix)


@router.get("/products/{product_id}/versions/{version_number}/compatibility")
def get_compatibility(product_id: str, version_number: str, session: Session = Depends(get_session)):
    return success_response(CompatibilityService(session).get(product_id, version_number))


@router.get("/compatibility")
def list_compatibility(
    product_id: Optional[str] = Query(default=None),
    validation_status: Optional[ValidationStatus] = Query(default=None),
    page: Pagination = Depends(pagination()),
    session: Session = Depends(get_session)
):
    """List compatibility matrices, most recently validated first"""
    matrices, total = CompatibilityService(session).list(
        CompatibilityFilter(product_id=product_id, validation_status=validation_status), page
    )
    return paginated_response(matrices, page, total)
