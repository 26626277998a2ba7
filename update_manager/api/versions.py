"""
Versions API endpoints: lifecycle transitions and packages
"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import field_validator
from sqlmodel import Session, SQLModel
from typing import Any, Dict, Optional
import structlog

from update_manager.api.deps import audit, get_audit_sink, get_package_storage
from update_manager.api.schemas import VersionNumberModel, reject_null
from update_manager.core.concurrency import Deadline
from update_manager.core.config import get_settings
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor, get_actor, get_deadline, pagination
from update_manager.core.errors import InternalError, InvalidRequest, UpdateManagerError
from update_manager.core.events import event_bus
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.core.timeutil import UTCDateTime
from update_manager.models.audit_log import AuditAction
from update_manager.models.filters import VersionFilter
from update_manager.models.version import PackageType, ReleaseNotes, ReleaseType, VersionState
from update_manager.services.audit import AuditSink
from update_manager.services.package_storage import PackageStorage
from update_manager.services.version_lifecycle import VersionLifecycle

logger = structlog.get_logger(__name__)
router = APIRouter()


class VersionCreate(VersionNumberModel):
    """Schema for creating a version"""
    version_number: str
    release_type: ReleaseType
    release_date: UTCDateTime
    eol_date: Optional[UTCDateTime] = None
    min_server_version: Optional[str] = None
    max_server_version: Optional[str] = None
    recommended_server_version: Optional[str] = None
    release_notes: Optional[ReleaseNotes] = None

    def to_values(self) -> Dict[str, Any]:
        values = self.model_dump(exclude={"release_notes"})
        if self.release_notes is not None:
            values["release_notes"] = self.release_notes.model_dump(mode="json")
        return values


class VersionUpdate(SQLModel):
    """Schema for updating a draft version"""
    release_type: Optional[ReleaseType] = None
    release_date: Optional[UTCDateTime] = None
    eol_date: Optional[UTCDateTime] = None
    min_server_version: Optional[str] = None
    max_server_version: Optional[str] = None
    recommended_server_version: Optional[str] = None
    release_notes: Optional[ReleaseNotes] = None

    @field_validator("release_type", "release_date")
    @classmethod
    def reject_null_fields(cls, value):
        return reject_null(value)

    def to_patch(self) -> Dict[str, Any]:
        patch = self.model_dump(exclude_unset=True, exclude={"release_notes"})
        if "release_notes" in self.model_fields_set:
            patch["release_notes"] = (
                self.release_notes.model_dump(mode="json") if self.release_notes else None
            )
        return patch


class VersionApprove(SQLModel):
    """Schema for approving a version"""
    approved_by: Optional[str] = None


def get_lifecycle(
    session: Session = Depends(get_session),
    storage: PackageStorage = Depends(get_package_storage)
) -> VersionLifecycle:
    return VersionLifecycle(session, event_bus=event_bus, storage=storage)


@router.get("")
def list_versions(
    product_id: Optional[str] = Query(default=None),
    state: Optional[VersionState] = Query(default=None),
    release_type: Optional[ReleaseType] = Query(default=None),
    page: Pagination = Depends(pagination()),
    lifecycle: VersionLifecycle = Depends(get_lifecycle)
):
    """List versions across products, newest release first"""
    versions, total = lifecycle.list_versions(
        VersionFilter(product_id=product_id, state=state, release_type=release_type), page
    )
    return paginated_response(versions, page, total)


@router.get("/{version_id}")
def get_version(version_id: str, lifecycle: VersionLifecycle = Depends(get_lifecycle)):
    return success_response(lifecycle.get_version(version_id))


@router.put("/{version_id}")
def update_version(
    version_id: str,
    version_data: VersionUpdate,
    actor: Actor = Depends(get_actor),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Update a draft version

    Only drafts can be edited; any other state fails with INVALID_STATE.
    """
    try:
        version = lifecycle.update_draft(version_id, version_data.to_patch())
    except UpdateManagerError:
        raise
    except Exception as e:
        lifecycle.session.rollback()
        logger.error(f"Failed to update version {version_id}: {e}")
        raise InternalError("Failed to update version")

    audit(audit_sink, actor, AuditAction.UPDATE, "version", version.id)
    return success_response(version)


@router.post("/{version_id}/submit")
def submit_version(
    version_id: str,
    actor: Actor = Depends(get_actor),
    deadline: Deadline = Depends(get_deadline),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Submit a draft for review"""
    version = lifecycle.submit_for_review(version_id, actor.user_id, deadline)
    audit(audit_sink, actor, AuditAction.UPDATE, "version", version.id, state=version.state.value)
    return success_response(version)


@router.post("/{version_id}/approve")
def approve_version(
    version_id: str,
    approve_data: Optional[VersionApprove] = None,
    actor: Actor = Depends(get_actor),
    deadline: Deadline = Depends(get_deadline),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Approve a version pending review"""
    approved_by = (approve_data.approved_by if approve_data else None) or actor.user_id
    version = lifecycle.approve(version_id, approved_by, deadline)
    audit(audit_sink, actor, AuditAction.APPROVE, "version", version.id, approved_by=approved_by)
    return success_response(version)


@router.post("/{version_id}/release")
def release_version(
    version_id: str,
    actor: Actor = Depends(get_actor),
    deadline: Deadline = Depends(get_deadline),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Release an approved version, making it visible as an update"""
    version = lifecycle.release(version_id, actor.user_id, deadline)
    audit(
        audit_sink, actor, AuditAction.RELEASE, "version", version.id,
        product_id=version.product_id, version_number=version.version_number
    )
    return success_response(version)


@router.post("/{version_id}/deprecate")
def deprecate_version(
    version_id: str,
    actor: Actor = Depends(get_actor),
    deadline: Deadline = Depends(get_deadline),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    version = lifecycle.deprecate(version_id, actor.user_id, deadline)
    audit(audit_sink, actor, AuditAction.UPDATE, "version", version.id, state=version.state.value)
    return success_response(version)


@router.post("/{version_id}/eol")
def end_of_life_version(
    version_id: str,
    actor: Actor = Depends(get_actor),
    deadline: Deadline = Depends(get_deadline),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    version = lifecycle.end_of_life(version_id, actor.user_id, deadline)
    audit(audit_sink, actor, AuditAction.UPDATE, "version", version.id, state=version.state.value)
    return success_response(version)


# Packages
@router.post("/{version_id}/packages", status_code=status.HTTP_201_CREATED)
def upload_package(
    version_id: str,
    file: UploadFile = File(...),
    package_type: str = Form(...),
    os: Optional[str] = Form(default=None),
    architecture: Optional[str] = Form(default=None),
    actor: Actor = Depends(get_actor),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Upload a package file and attach it to a draft version"""
    try:
        parsed_type = PackageType(package_type)
    except ValueError:
        allowed = ", ".join(t.value for t in PackageType)
        raise InvalidRequest(f"Invalid package_type '{package_type}', expected one of: {allowed}")
    if not file.filename:
        raise InvalidRequest("Uploaded file must have a file name")

    try:
        package = lifecycle.upload_package(
            version_id,
            file_name=file.filename,
            source=file.file,
            package_type=parsed_type,
            uploaded_by=actor.user_id,
            os_name=os,
            architecture=architecture,
            download_prefix=f"{get_settings().API_V1_PREFIX}/versions",
        )
    except UpdateManagerError:
        raise
    except Exception as e:
        lifecycle.session.rollback()
        logger.error(f"Failed to upload package for version {version_id}: {e}")
        raise InternalError("Failed to upload package")

    audit(
        audit_sink, actor, AuditAction.UPLOAD, "package", package.id,
        version_id=version_id, file_name=package.file_name, checksum_sha256=package.checksum_sha256
    )
    return success_response(package)


@router.get("/{version_id}/packages")
def list_packages(version_id: str, lifecycle: VersionLifecycle = Depends(get_lifecycle)):
    return success_response(lifecycle.list_packages(version_id))


@router.get("/{version_id}/packages/{package_id}")
def get_package(version_id: str, package_id: str, lifecycle: VersionLifecycle = Depends(get_lifecycle)):
    _, package = lifecycle.get_package(version_id, package_id)
    return success_response(package)


@router.get("/{version_id}/packages/{package_id}/download")
def download_package(
    version_id: str,
    package_id: str,
    actor: Actor = Depends(get_actor),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
    storage: PackageStorage = Depends(get_package_storage),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Stream a package file with its checksum"""
    version, package = lifecycle.get_package(version_id, package_id)
    path = storage.open_existing(version.id, package.id, package.file_name)

    audit(audit_sink, actor, AuditAction.DOWNLOAD, "package", package.id, version_id=version.id)
    return FileResponse(
        path,
        media_type="application/octet-stream",
        filename=package.file_name,
        headers={
            "Content-Length": str(package.file_size),
            "X-Checksum-SHA256": package.checksum_sha256,
        },
    )
