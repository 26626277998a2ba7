"""
Upgrade path API endpoints
"""

from fastapi import APIRouter, Depends, status
from sqlmodel import Session, SQLModel
from typing import List
import structlog

from update_manager.api.deps import audit, get_audit_sink
from update_manager.api.schemas import VersionNumberModel
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor, get_actor
from update_manager.core.responses import success_response
from update_manager.models.audit_log import AuditAction
from update_manager.models.upgrade_path import PathType
from update_manager.services.audit import AuditSink
from update_manager.services.upgrade_paths import UpgradePathService

logger = structlog.get_logger(__name__)
router = APIRouter()


class UpgradePathCreate(VersionNumberModel):
    """Schema for creating an upgrade path"""
    from_version: str
    to_version: str
    path_type: PathType = PathType.DIRECT
    intermediate_versions: List[str] = []


class UpgradePathBlock(SQLModel):
    """Schema for blocking an upgrade path"""
    reason: str


@router.post("/{product_id}/upgrade-paths", status_code=status.HTTP_201_CREATED)
def create_upgrade_path(
    product_id: str,
    path_data: UpgradePathCreate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    path = UpgradePathService(session).create(product_id, **path_data.model_dump())
    audit(
        audit_sink, actor, AuditAction.CREATE, "upgrade_path", path.id,
        from_version=path.from_version, to_version=path.to_version
    )
    return success_response(path)


@router.get("/{product_id}/upgrade-paths")
def list_upgrade_paths(product_id: str, session: Session = Depends(get_session)):
    return success_response(UpgradePathService(session).list_by_product(product_id))


@router.get("/{product_id}/upgrade-paths/{from_version}/{to_version}")
def get_upgrade_path(
    product_id: str,
    from_version: str,
    to_version: str,
    session: Session = Depends(get_session)
):
    return success_response(UpgradePathService(session).get(product_id, from_version, to_version))


@router.post("/{product_id}/upgrade-paths/{from_version}/{to_version}/block")
def block_upgrade_path(
    product_id: str,
    from_version: str,
    to_version: str,
    block_data: UpgradePathBlock,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Block an upgrade path with a reason"""
    path = UpgradePathService(session).block(product_id, from_version, to_version, block_data.reason)
    audit(audit_sink, actor, AuditAction.UPDATE, "upgrade_path", path.id, blocked=True, reason=block_data.reason)
    return success_response(path)
