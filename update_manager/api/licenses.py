"""
Licenses API endpoints, nested under customers and subscriptions
"""

from fastapi import APIRouter, Depends, Query, status
from pydantic import field_validator
from sqlmodel import Session, SQLModel
from typing import Optional
import structlog

from update_manager.api.deps import audit, get_audit_sink
from update_manager.api.schemas import RenewRequest, reject_null
from update_manager.core.concurrency import Deadline
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor, get_actor, get_deadline, pagination
from update_manager.core.errors import InternalError, UpdateManagerError
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.core.timeutil import UTCDateTime
from update_manager.models.audit_log import AuditAction
from update_manager.models.filters import LicenseFilter
from update_manager.models.license import LicenseStatus, LicenseType
from update_manager.services.audit import AuditSink
from update_manager.services.license_service import LicenseService

logger = structlog.get_logger(__name__)
router = APIRouter()

LICENSE_PATH = "/{customer_id}/subscriptions/{subscription_id}/licenses/{license_id}"


class LicenseCreate(SQLModel):
    """Schema for creating a license"""
    license_id: Optional[str] = None
    product_id: str
    license_type: LicenseType
    number_of_seats: int
    start_date: UTCDateTime
    end_date: Optional[UTCDateTime] = None
    notes: Optional[str] = None


class LicenseUpdate(SQLModel):
    """Schema for updating a license"""
    number_of_seats: Optional[int] = None
    start_date: Optional[UTCDateTime] = None
    end_date: Optional[UTCDateTime] = None
    notes: Optional[str] = None

    @field_validator("number_of_seats", "start_date")
    @classmethod
    def reject_null_fields(cls, value):
        return reject_null(value)


@router.post("/{customer_id}/subscriptions/{subscription_id}/licenses", status_code=status.HTTP_201_CREATED)
def create_license(
    customer_id: str,
    subscription_id: str,
    license_data: LicenseCreate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Create a license under a subscription"""
    try:
        license = LicenseService(session).create(
            customer_id,
            subscription_id,
            assigned_by=actor.user_id,
            **license_data.model_dump()
        )
    except UpdateManagerError:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to create license in subscription {subscription_id}: {e}")
        raise InternalError("Failed to create license")

    audit(
        audit_sink, actor, AuditAction.CREATE, "license", license.license_id,
        product_id=license.product_id, number_of_seats=license.number_of_seats
    )
    return success_response(license)


@router.get("/{customer_id}/subscriptions/{subscription_id}/licenses")
def list_licenses(
    customer_id: str,
    subscription_id: str,
    product_id: Optional[str] = Query(default=None),
    license_type: Optional[LicenseType] = Query(default=None),
    status: Optional[LicenseStatus] = Query(default=None),
    page: Pagination = Depends(pagination()),
    session: Session = Depends(get_session)
):
    licenses, total = LicenseService(session).list(
        customer_id,
        subscription_id,
        LicenseFilter(product_id=product_id, license_type=license_type, status=status),
        page,
    )
    return paginated_response(licenses, page, total)


@router.get(LICENSE_PATH)
def get_license(customer_id: str, subscription_id: str, license_id: str, session: Session = Depends(get_session)):
    return success_response(LicenseService(session).get(customer_id, subscription_id, license_id))


@router.put(LICENSE_PATH)
def update_license(
    customer_id: str,
    subscription_id: str,
    license_id: str,
    license_data: LicenseUpdate,
    actor: Actor = Depends(get_actor),
    deadline: Deadline = Depends(get_deadline),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    license = LicenseService(session).update(
        customer_id, subscription_id, license_id,
        license_data.model_dump(exclude_unset=True),
        deadline=deadline,
    )
    audit(audit_sink, actor, AuditAction.UPDATE, "license", license.license_id)
    return success_response(license)


@router.delete(LICENSE_PATH)
def revoke_license(
    customer_id: str,
    subscription_id: str,
    license_id: str,
    actor: Actor = Depends(get_actor),
    deadline: Deadline = Depends(get_deadline),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Revoke a license; refused while seats are still allocated"""
    license = LicenseService(session).revoke(customer_id, subscription_id, license_id, deadline=deadline)
    audit(audit_sink, actor, AuditAction.DELETE, "license", license.license_id, status="revoked")
    return success_response(license)


@router.get(LICENSE_PATH + "/statistics")
def license_statistics(customer_id: str, subscription_id: str, license_id: str, session: Session = Depends(get_session)):
    return success_response(LicenseService(session).statistics(customer_id, subscription_id, license_id))


@router.get(LICENSE_PATH + "/utilization")
def license_utilization(customer_id: str, subscription_id: str, license_id: str, session: Session = Depends(get_session)):
    """Seat usage of a license"""
    return success_response(LicenseService(session).utilization(customer_id, subscription_id, license_id))


@router.post(LICENSE_PATH + "/renew")
def renew_license(
    customer_id: str,
    subscription_id: str,
    license_id: str,
    renew_data: RenewRequest,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Extend a time based license"""
    license = LicenseService(session).renew(customer_id, subscription_id, license_id, renew_data.end_date)
    audit(
        audit_sink, actor, AuditAction.UPDATE, "license", license.license_id,
        renewed_until=renew_data.end_date.isoformat()
    )
    return success_response(license)
