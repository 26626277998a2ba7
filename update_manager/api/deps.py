"""
Shared dependencies of the API routers
"""

from fastapi import Depends
from sqlmodel import Session

from update_manager.core.config import get_settings
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor
from update_manager.models.audit_log import AuditAction
from update_manager.services.audit import AuditEntry, AuditSink, DatabaseAuditSink
from update_manager.services.package_storage import PackageStorage


def get_audit_sink(session: Session = Depends(get_session)) -> AuditSink:
    """Audit sink writing through the engine of the request session"""
    return DatabaseAuditSink(session.get_bind())


def get_package_storage() -> PackageStorage:
    settings = get_settings()
    return PackageStorage(settings.PACKAGE_STORAGE_DIR, settings.MAX_PACKAGE_SIZE_BYTES)


def audit(
    sink: AuditSink,
    actor: Actor,
    action: AuditAction,
    resource_type: str,
    resource_id,
    **details
):
    sink.record(AuditEntry.from_actor(actor, action, resource_type, resource_id, **details))
