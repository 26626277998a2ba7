"""
Subscriptions
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from update_manager.core.errors import Conflict, HasDependents, InvalidRequest, NotFound
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.customer import Customer
from update_manager.models.filters import SubscriptionFilter
from update_manager.models.license import License, LicenseStatus, LicenseType
from update_manager.models.subscription import Subscription, SubscriptionStatus
from update_manager.services.customer_service import CustomerService
from update_manager.services.lookup import find_by_ref, generate_business_id

logger = structlog.get_logger(__name__)


def check_date_range(start_date: Optional[datetime], end_date: Optional[datetime]):
    if start_date is not None and end_date is not None and end_date < start_date:
        raise InvalidRequest("end_date must not be before start_date")


class SubscriptionService:

    def __init__(self, session: Session):
        self.session = session
        self.customers = CustomerService(session)

    def get(self, customer_ref, subscription_ref) -> Tuple[Customer, Subscription]:
        """Resolve a subscription that must belong to the given customer"""
        customer = self.customers.get_customer(customer_ref)
        subscription = find_by_ref(self.session, Subscription, "subscription_id", subscription_ref)
        if subscription is None or subscription.customer_id != customer.id:
            raise NotFound.for_resource("Subscription", subscription_ref)
        return customer, subscription

    def create(
        self,
        customer_ref,
        name: str,
        start_date: datetime,
        created_by: str,
        subscription_id: Optional[str] = None,
        description: Optional[str] = None,
        end_date: Optional[datetime] = None,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        notes: Optional[str] = None
    ) -> Subscription:
        customer = self.customers.get_customer(customer_ref)
        check_date_range(start_date, end_date)
        subscription = Subscription(
            subscription_id=subscription_id or generate_business_id("SUB"),
            customer_id=customer.id,
            name=name,
            description=description,
            start_date=start_date,
            end_date=end_date,
            status=status,
            created_by=created_by,
            notes=notes,
        )
        self._commit(subscription)
        logger.info(f"Created subscription {subscription.subscription_id} for customer {customer.customer_id}")
        return subscription

    def update(self, customer_ref, subscription_ref, patch: Dict[str, Any]) -> Subscription:
        _, subscription = self.get(customer_ref, subscription_ref)
        check_date_range(
            patch.get("start_date", subscription.start_date),
            patch.get("end_date", subscription.end_date),
        )
        for key, value in patch.items():
            setattr(subscription, key, value)
        subscription.updated_at = utc_now()
        self._commit(subscription)
        return subscription

    def delete(self, customer_ref, subscription_ref):
        _, subscription = self.get(customer_ref, subscription_ref)
        license_count = self.session.exec(
            select(func.count()).select_from(License).where(License.subscription_id == subscription.id)
        ).one()
        if license_count:
            raise HasDependents(
                f"Subscription {subscription.subscription_id} has {license_count} license(s)"
            )
        business_id = subscription.subscription_id
        self.session.delete(subscription)
        self.session.commit()
        logger.info(f"Deleted subscription {business_id}")

    def list(self, customer_ref, filters: SubscriptionFilter, pagination: Pagination) -> Tuple[List[Subscription], int]:
        customer = self.customers.get_customer(customer_ref)
        filters.customer_id = customer.id
        clauses = filters.clauses()
        total = self.session.exec(select(func.count()).select_from(Subscription).where(*clauses)).one()
        rows = self.session.exec(
            select(Subscription)
            .where(*clauses)
            .order_by(Subscription.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).all()
        return list(rows), total

    def renew(self, customer_ref, subscription_ref, end_date: datetime) -> Subscription:
        """Extend the end date, reactivating an expired subscription"""
        _, subscription = self.get(customer_ref, subscription_ref)
        check_date_range(subscription.start_date, end_date)

        subscription.end_date = end_date
        if subscription.status == SubscriptionStatus.EXPIRED and end_date > utc_now():
            subscription.status = SubscriptionStatus.ACTIVE
        subscription.updated_at = utc_now()
        self._commit(subscription)
        logger.info(f"Renewed subscription {subscription.subscription_id} until {end_date.isoformat()}")
        return subscription

    def statistics(self, customer_ref, subscription_ref) -> Dict[str, Any]:
        _, subscription = self.get(customer_ref, subscription_ref)
        licenses = self.session.exec(
            select(License).where(License.subscription_id == subscription.id)
        ).all()
        return {
            "subscription_id": subscription.subscription_id,
            "total_licenses": len(licenses),
            "active_licenses": sum(1 for l in licenses if l.status == LicenseStatus.ACTIVE),
            "expired_licenses": sum(1 for l in licenses if l.status == LicenseStatus.EXPIRED),
            "total_seats": sum(l.number_of_seats for l in licenses),
            "perpetual_licenses": sum(1 for l in licenses if l.license_type == LicenseType.PERPETUAL),
            "time_based_licenses": sum(1 for l in licenses if l.license_type == LicenseType.TIME_BASED),
        }

    def expire_if_past_end(self, subscription: Subscription, now: Optional[datetime] = None) -> bool:
        """Mark an active subscription expired once its end date has passed"""
        now = now or utc_now()
        if subscription.status == SubscriptionStatus.ACTIVE and subscription.is_past_end(now):
            subscription.status = SubscriptionStatus.EXPIRED
            subscription.updated_at = now
            self.session.add(subscription)
            return True
        return False

    def _commit(self, subscription: Subscription):
        self.session.add(subscription)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict(f"Subscription {subscription.subscription_id} already exists")
        self.session.refresh(subscription)
