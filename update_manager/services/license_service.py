"""
Licenses: creation, update, renewal and revocation
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from update_manager.core.concurrency import Deadline, KeyedLocks
from update_manager.core.errors import Conflict, HasAllocations, InvalidRequest, InvalidState, NotFound
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.filters import LicenseFilter
from update_manager.models.license import License, LicenseStatus, LicenseType
from update_manager.models.product import Product
from update_manager.services.lookup import find_by_ref, generate_business_id
from update_manager.services.seat_accountant import SeatAccountant
from update_manager.services.subscription_service import SubscriptionService, check_date_range

logger = structlog.get_logger(__name__)


def check_license_dates(license_type: LicenseType, start_date: datetime, end_date: Optional[datetime]):
    if license_type == LicenseType.TIME_BASED and end_date is None:
        raise InvalidRequest("end_date is required for time_based licenses")
    check_date_range(start_date, end_date)


class LicenseService:

    def __init__(self, session: Session, locks: Optional[KeyedLocks] = None):
        self.session = session
        self.subscriptions = SubscriptionService(session)
        self.seats = SeatAccountant(session, locks=locks)

    def get(self, customer_ref, subscription_ref, license_ref) -> License:
        _, _, license = self.seats.resolve_license(customer_ref, subscription_ref, license_ref)
        return license

    def create(
        self,
        customer_ref,
        subscription_ref,
        product_id: str,
        license_type: LicenseType,
        number_of_seats: int,
        start_date: datetime,
        assigned_by: str,
        license_id: Optional[str] = None,
        end_date: Optional[datetime] = None,
        notes: Optional[str] = None
    ) -> License:
        _, subscription = self.subscriptions.get(customer_ref, subscription_ref)
        product = find_by_ref(self.session, Product, "product_id", product_id)
        if product is None:
            raise NotFound.for_resource("Product", product_id)
        if number_of_seats < 0:
            raise InvalidRequest("number_of_seats must not be negative")
        check_license_dates(license_type, start_date, end_date)

        license = License(
            license_id=license_id or generate_business_id("LIC"),
            subscription_id=subscription.id,
            product_id=product.product_id,
            license_type=license_type,
            number_of_seats=number_of_seats,
            start_date=start_date,
            end_date=end_date,
            assigned_by=assigned_by,
            notes=notes,
        )
        self._commit(license)
        logger.info(f"Created license {license.license_id} for product {license.product_id}")
        return license

    def update(
        self,
        customer_ref,
        subscription_ref,
        license_ref,
        patch: Dict[str, Any],
        deadline: Optional[Deadline] = None
    ) -> License:
        """Update license terms; capacity may not drop below the seats in use"""
        license = self.get(customer_ref, subscription_ref, license_ref)

        with self.seats.locks.hold(license.id, deadline):
            try:
                license = self.seats.lock_row(license.id)
                check_license_dates(
                    patch.get("license_type", license.license_type),
                    patch.get("start_date", license.start_date),
                    patch.get("end_date", license.end_date),
                )
                if "number_of_seats" in patch:
                    seats = patch["number_of_seats"]
                    if seats is None or seats < 0:
                        raise InvalidRequest("number_of_seats must be a non-negative integer")
                    in_use = self.seats.allocated_seats(license.id)
                    if seats < in_use:
                        raise InvalidRequest(
                            f"number_of_seats cannot be lower than the {in_use} seat(s) allocated"
                        )
                for key, value in patch.items():
                    setattr(license, key, value)
                license.updated_at = utc_now()
                self.session.add(license)
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise

        self.session.refresh(license)
        return license

    def revoke(
        self,
        customer_ref,
        subscription_ref,
        license_ref,
        deadline: Optional[Deadline] = None
    ) -> License:
        """Revoke a license, refused while it still has active allocations"""
        license = self.get(customer_ref, subscription_ref, license_ref)

        with self.seats.locks.hold(license.id, deadline):
            try:
                license = self.seats.lock_row(license.id)
                active = self.seats.active_allocation_count(license.id)
                if active:
                    raise HasAllocations(
                        f"License {license.license_id} has {active} active allocation(s)"
                    )
                license.status = LicenseStatus.REVOKED
                license.updated_at = utc_now()
                self.session.add(license)
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise

        self.session.refresh(license)
        logger.info(f"Revoked license {license.license_id}")
        return license

    def renew(self, customer_ref, subscription_ref, license_ref, end_date: datetime) -> License:
        """Extend a time based license; an expired one becomes active when the new end is ahead"""
        license = self.get(customer_ref, subscription_ref, license_ref)
        if license.license_type != LicenseType.TIME_BASED:
            raise InvalidRequest("Only time_based licenses can be renewed")
        if license.status == LicenseStatus.REVOKED:
            raise InvalidState(f"License {license.license_id} is revoked")
        check_date_range(license.start_date, end_date)

        license.end_date = end_date
        if license.status == LicenseStatus.EXPIRED and end_date > utc_now():
            license.status = LicenseStatus.ACTIVE
        license.updated_at = utc_now()
        self._commit(license)
        logger.info(f"Renewed license {license.license_id} until {end_date.isoformat()}")
        return license

    def list(self, customer_ref, subscription_ref, filters: LicenseFilter, pagination: Pagination) -> Tuple[List[License], int]:
        _, subscription = self.subscriptions.get(customer_ref, subscription_ref)
        filters.subscription_id = subscription.id
        clauses = filters.clauses()
        total = self.session.exec(select(func.count()).select_from(License).where(*clauses)).one()
        rows = self.session.exec(
            select(License)
            .where(*clauses)
            .order_by(License.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).all()
        return list(rows), total

    def utilization(self, customer_ref, subscription_ref, license_ref) -> Dict[str, Any]:
        license = self.get(customer_ref, subscription_ref, license_ref)
        data = {"license_id": license.license_id}
        data.update(self.seats.utilization(license))
        return data

    def statistics(self, customer_ref, subscription_ref, license_ref) -> Dict[str, Any]:
        license = self.get(customer_ref, subscription_ref, license_ref)
        data = {
            "license_id": license.license_id,
            "license_type": license.license_type,
            "status": license.status,
        }
        data.update(self.seats.utilization(license))
        return data

    def expire_if_past_end(self, license: License, now: Optional[datetime] = None) -> bool:
        """Mark an active time based license expired once its end date has passed"""
        now = now or utc_now()
        if license.status == LicenseStatus.ACTIVE and license.is_expired_at(now):
            license.status = LicenseStatus.EXPIRED
            license.updated_at = now
            self.session.add(license)
            return True
        return False

    def _commit(self, license: License):
        self.session.add(license)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict(f"License {license.license_id} already exists")
        self.session.refresh(license)
