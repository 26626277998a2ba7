"""
License allocation API endpoints
"""

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session, SQLModel
from typing import Optional
import structlog

from update_manager.api.deps import audit, get_audit_sink
from update_manager.core.concurrency import Deadline
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor, get_actor, get_deadline, pagination
from update_manager.core.events import event_bus
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.models.audit_log import AuditAction
from update_manager.models.filters import AllocationFilter
from update_manager.models.license_allocation import AllocationStatus
from update_manager.services.audit import AuditSink
from update_manager.services.seat_accountant import SeatAccountant

logger = structlog.get_logger(__name__)
router = APIRouter()

LICENSE_PATH = "/{customer_id}/subscriptions/{subscription_id}/licenses/{license_id}"


class AllocationCreate(SQLModel):
    """Schema for allocating seats; deployment_id narrows a tenant allocation"""
    tenant_id: Optional[str] = None
    deployment_id: Optional[str] = None
    seats_allocated: int
    notes: Optional[str] = None


def get_accountant(session: Session = Depends(get_session)) -> SeatAccountant:
    return SeatAccountant(session, event_bus=event_bus)


@router.post(LICENSE_PATH + "/allocate", status_code=status.HTTP_201_CREATED)
def allocate_seats(
    customer_id: str,
    subscription_id: str,
    license_id: str,
    allocation_data: AllocationCreate,
    actor: Actor = Depends(get_actor),
    deadline: Deadline = Depends(get_deadline),
    accountant: SeatAccountant = Depends(get_accountant),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Allocate seats of a license to a tenant or deployment

    Rules:
    - License must be active and, if time based, not expired
    - Tenant must belong to the customer, deployment to the tenant
    - Deployment product must match the license product
    - Allocated seats can never exceed the license capacity
    """
    allocation = accountant.allocate(
        customer_id,
        subscription_id,
        license_id,
        seats_allocated=allocation_data.seats_allocated,
        allocated_by=actor.user_id,
        tenant_ref=allocation_data.tenant_id,
        deployment_ref=allocation_data.deployment_id,
        notes=allocation_data.notes,
        deadline=deadline,
    )
    audit(
        audit_sink, actor, AuditAction.CREATE, "license_allocation", allocation.allocation_id,
        license_id=license_id, seats_allocated=allocation.seats_allocated
    )
    return success_response(allocation)


@router.get(LICENSE_PATH + "/allocations")
def list_license_allocations(
    customer_id: str,
    subscription_id: str,
    license_id: str,
    status: Optional[AllocationStatus] = Query(default=None),
    page: Pagination = Depends(pagination()),
    accountant: SeatAccountant = Depends(get_accountant)
):
    allocations, total = accountant.allocations_for_license(
        customer_id, subscription_id, license_id, AllocationFilter(status=status), page
    )
    return paginated_response(allocations, page, total)


@router.post(LICENSE_PATH + "/allocations/{allocation_id}/release")
def release_allocation(
    customer_id: str,
    subscription_id: str,
    license_id: str,
    allocation_id: str,
    actor: Actor = Depends(get_actor),
    deadline: Deadline = Depends(get_deadline),
    accountant: SeatAccountant = Depends(get_accountant),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Give the seats of an allocation back to the license"""
    allocation = accountant.release(
        customer_id, subscription_id, license_id, allocation_id,
        released_by=actor.user_id,
        deadline=deadline,
    )
    audit(audit_sink, actor, AuditAction.UPDATE, "license_allocation", allocation.allocation_id, status="released")
    return success_response(allocation)


@router.get("/{customer_id}/tenants/{tenant_id}/licenses")
def list_tenant_allocations(
    customer_id: str,
    tenant_id: str,
    status: Optional[AllocationStatus] = Query(default=None),
    page: Pagination = Depends(pagination()),
    accountant: SeatAccountant = Depends(get_accountant)
):
    """License allocations held by a tenant"""
    allocations, total = accountant.allocations_for_tenant(
        customer_id, tenant_id, AllocationFilter(status=status), page
    )
    return paginated_response(allocations, page, total)


@router.get("/{customer_id}/tenants/{tenant_id}/deployments/{deployment_id}/licenses")
def list_deployment_allocations(
    customer_id: str,
    tenant_id: str,
    deployment_id: str,
    status: Optional[AllocationStatus] = Query(default=None),
    page: Pagination = Depends(pagination()),
    accountant: SeatAccountant = Depends(get_accountant)
):
    """License allocations pinned to a deployment"""
    allocations, total = accountant.allocations_for_deployment(
        customer_id, tenant_id, deployment_id, AllocationFilter(status=status), page
    )
    return paginated_response(allocations, page, total)
