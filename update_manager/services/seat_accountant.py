"""
License seat accountant

Keeps the sum of active seats_allocated of a license at or below its
number_of_seats. Allocate, release and revoke of one license run inside a
per-license critical section: a process lock plus SELECT ... FOR UPDATE on
the license row.
"""

from typing import Any, Dict, List, Optional, Tuple
import uuid

from sqlalchemy import func
from sqlmodel import Session, select
import structlog

from update_manager.core.concurrency import Deadline, KeyedLocks
from update_manager.core.errors import (
    AlreadyReleased, InsufficientSeats, InvalidRequest, LicenseExpired,
    LicenseNotActive, NotFound, ProductMismatch
)
from update_manager.core.events import (
    AllocationReleased, EventBus, LicenseAllocated, event_bus as default_event_bus
)
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.customer import Customer
from update_manager.models.deployment import Deployment
from update_manager.models.filters import AllocationFilter
from update_manager.models.license import License, LicenseStatus
from update_manager.models.license_allocation import AllocationStatus, LicenseAllocation
from update_manager.models.subscription import Subscription
from update_manager.models.tenant import Tenant
from update_manager.services.lookup import find_by_ref, generate_business_id
from update_manager.services.subscription_service import SubscriptionService

logger = structlog.get_logger(__name__)

# Shared by every accountant in the process
license_locks = KeyedLocks()


class SeatAccountant:

    def __init__(
        self,
        session: Session,
        event_bus: Optional[EventBus] = None,
        locks: Optional[KeyedLocks] = None
    ):
        self.session = session
        self.subscriptions = SubscriptionService(session)
        self.event_bus = event_bus or default_event_bus
        self.locks = locks or license_locks

    # Lookups
    def resolve_license(self, customer_ref, subscription_ref, license_ref) -> Tuple[Customer, Subscription, License]:
        """Walk customer -> subscription -> license, NotFound on any broken link"""
        customer, subscription = self.subscriptions.get(customer_ref, subscription_ref)
        license = find_by_ref(self.session, License, "license_id", license_ref)
        if license is None or license.subscription_id != subscription.id:
            raise NotFound.for_resource("License", license_ref)
        return customer, subscription, license

    def lock_row(self, license_id: uuid.UUID) -> License:
        """Re-read the license with a row lock, inside the critical section"""
        license = self.session.exec(
            select(License)
            .where(License.id == license_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if license is None:
            raise NotFound.for_resource("License", license_id)
        return license

    def allocated_seats(self, license_id: uuid.UUID) -> int:
        return self.session.exec(
            select(func.coalesce(func.sum(LicenseAllocation.seats_allocated), 0)).where(
                LicenseAllocation.license_id == license_id,
                LicenseAllocation.status == AllocationStatus.ACTIVE,
            )
        ).one()

    def active_allocation_count(self, license_id: uuid.UUID) -> int:
        return self.session.exec(
            select(func.count()).select_from(LicenseAllocation).where(
                LicenseAllocation.license_id == license_id,
                LicenseAllocation.status == AllocationStatus.ACTIVE,
            )
        ).one()

    # Operations
    def allocate(
        self,
        customer_ref,
        subscription_ref,
        license_ref,
        seats_allocated: int,
        allocated_by: str,
        tenant_ref=None,
        deployment_ref=None,
        notes: Optional[str] = None,
        deadline: Optional[Deadline] = None
    ) -> LicenseAllocation:
        """Allocate seats to a tenant or to one of its deployments.

        Preconditions are checked in a fixed order: license active, not
        expired, target shape, target ownership, product match, seat count,
        capacity. All of them run inside the critical section so a
        concurrent revoke or allocate cannot slip in between.
        """
        customer, _, license = self.resolve_license(customer_ref, subscription_ref, license_ref)

        with self.locks.hold(license.id, deadline):
            try:
                license = self.lock_row(license.id)

                if license.status != LicenseStatus.ACTIVE:
                    raise LicenseNotActive(f"License {license.license_id} is {license.status.value}")
                if license.is_expired_at(utc_now()):
                    raise LicenseExpired(f"License {license.license_id} has expired")

                if tenant_ref is None:
                    raise InvalidRequest("tenant_id is required, deployment_id is optional")
                tenant = find_by_ref(self.session, Tenant, "tenant_id", tenant_ref)
                if tenant is None or tenant.customer_id != customer.id:
                    raise NotFound.for_resource("Tenant", tenant_ref)

                deployment = None
                if deployment_ref is not None:
                    deployment = find_by_ref(self.session, Deployment, "deployment_id", deployment_ref)
                    if deployment is None or deployment.tenant_id != tenant.id:
                        raise NotFound.for_resource("Deployment", deployment_ref)
                    if deployment.product_id != license.product_id:
                        raise ProductMismatch(
                            f"Deployment product {deployment.product_id} does not match "
                            f"license product {license.product_id}"
                        )

                if seats_allocated is None or seats_allocated < 1:
                    raise InvalidRequest("seats_allocated must be at least 1")

                used = self.allocated_seats(license.id)
                available = license.number_of_seats - used
                if seats_allocated > available:
                    raise InsufficientSeats(
                        f"Requested {seats_allocated} seat(s), {available} of "
                        f"{license.number_of_seats} available"
                    )

                allocation = LicenseAllocation(
                    allocation_id=generate_business_id("ALLOC"),
                    license_id=license.id,
                    tenant_id=tenant.id,
                    deployment_id=deployment.id if deployment else None,
                    seats_allocated=seats_allocated,
                    allocated_by=allocated_by,
                    notes=notes,
                )
                self.session.add(allocation)
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise

        self.session.refresh(allocation)
        logger.info(
            f"Allocated {seats_allocated} seat(s) of license {license.license_id} "
            f"to tenant {tenant.tenant_id}"
        )
        self.event_bus.publish(LicenseAllocated(
            license_id=license.id,
            allocation_id=allocation.id,
            tenant_id=tenant.id,
            seats_allocated=seats_allocated,
        ))
        return allocation

    def release(
        self,
        customer_ref,
        subscription_ref,
        license_ref,
        allocation_ref,
        released_by: str,
        deadline: Optional[Deadline] = None
    ) -> LicenseAllocation:
        _, _, license = self.resolve_license(customer_ref, subscription_ref, license_ref)
        allocation = find_by_ref(self.session, LicenseAllocation, "allocation_id", allocation_ref)
        if allocation is None or allocation.license_id != license.id:
            raise NotFound.for_resource("Allocation", allocation_ref)

        with self.locks.hold(license.id, deadline):
            try:
                self.lock_row(license.id)
                self.session.refresh(allocation)
                if allocation.status == AllocationStatus.RELEASED:
                    raise AlreadyReleased(f"Allocation {allocation.allocation_id} is already released")

                now = utc_now()
                allocation.status = AllocationStatus.RELEASED
                allocation.released_at = now
                allocation.released_by = released_by
                allocation.updated_at = now
                self.session.add(allocation)
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise

        self.session.refresh(allocation)
        logger.info(f"Released allocation {allocation.allocation_id} of license {license.license_id}")
        self.event_bus.publish(AllocationReleased(
            license_id=license.id,
            allocation_id=allocation.id,
            released_by=released_by,
        ))
        return allocation

    def utilization(self, license: License) -> Dict[str, Any]:
        allocated = self.allocated_seats(license.id)
        total = license.number_of_seats
        return {
            "total_seats": total,
            "allocated_seats": allocated,
            "available_seats": max(total - allocated, 0),
            "utilization_percent": round(allocated / total * 100, 2) if total > 0 else 0.0,
            "active_allocations": self.active_allocation_count(license.id),
        }

    # Listings
    def list_allocations(self, filters: AllocationFilter, pagination: Pagination) -> Tuple[List[LicenseAllocation], int]:
        clauses = filters.clauses()
        total = self.session.exec(
            select(func.count()).select_from(LicenseAllocation).where(*clauses)
        ).one()
        rows = self.session.exec(
            select(LicenseAllocation)
            .where(*clauses)
            .order_by(LicenseAllocation.allocation_date.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).all()
        return list(rows), total

    def allocations_for_license(
        self,
        customer_ref,
        subscription_ref,
        license_ref,
        filters: AllocationFilter,
        pagination: Pagination
    ):
        _, _, license = self.resolve_license(customer_ref, subscription_ref, license_ref)
        filters.license_id = license.id
        return self.list_allocations(filters, pagination)

    def allocations_for_tenant(self, customer_ref, tenant_ref, filters: AllocationFilter, pagination: Pagination):
        _, tenant = self.subscriptions.customers.get_tenant(customer_ref, tenant_ref)
        filters.tenant_id = tenant.id
        return self.list_allocations(filters, pagination)

    def allocations_for_deployment(
        self,
        customer_ref,
        tenant_ref,
        deployment_ref,
        filters: AllocationFilter,
        pagination: Pagination
    ):
        _, tenant = self.subscriptions.customers.get_tenant(customer_ref, tenant_ref)
        deployment = find_by_ref(self.session, Deployment, "deployment_id", deployment_ref)
        if deployment is None or deployment.tenant_id != tenant.id:
            raise NotFound.for_resource("Deployment", deployment_ref)
        filters.deployment_id = deployment.id
        return self.list_allocations(filters, pagination)
