"""
Audit log API endpoints
"""

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import Optional

from update_manager.core.database import get_session
from update_manager.core.dependencies import pagination
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response
from update_manager.models.audit_log import AuditAction
from update_manager.models.filters import AuditLogFilter
from update_manager.services.audit import list_audit_logs

router = APIRouter()


@router.get("")
def list_logs(
    resource_type: Optional[str] = Query(default=None),
    resource_id: Optional[str] = Query(default=None),
    user_id: Optional[str] = Query(default=None),
    action: Optional[AuditAction] = Query(default=None),
    page: Pagination = Depends(pagination()),
    session: Session = Depends(get_session)
):
    """Query the audit trail, newest first"""
    logs, total = list_audit_logs(
        session,
        AuditLogFilter(resource_type=resource_type, resource_id=resource_id, user_id=user_id, action=action),
        page,
    )
    return paginated_response(logs, page, total)
