"""
Tests for license creation, update, renewal and expiry
"""

from datetime import timedelta

import pytest
from sqlmodel import Session

from update_manager.core.concurrency import KeyedLocks
from update_manager.core.errors import HasDependents, InvalidRequest, InvalidState, NotFound
from update_manager.core.events import EventBus
from update_manager.core.timeutil import utc_now
from update_manager.models.license import LicenseStatus, LicenseType
from update_manager.models.subscription import SubscriptionStatus
from update_manager.services.license_service import LicenseService
from update_manager.services.seat_accountant import SeatAccountant
from update_manager.services.subscription_service import SubscriptionService

CUSTOMER = "CUST-ACME"
SUBSCRIPTION = "SUB-2026"


@pytest.fixture
def locks() -> KeyedLocks:
    return KeyedLocks()


@pytest.fixture
def licenses(db: Session, locks: KeyedLocks) -> LicenseService:
    return LicenseService(db, locks=locks)


class TestCreateLicense:
    """Test license creation rules"""

    def test_create_time_based(self, licenses, subscription, server_product):
        start = utc_now()
        license = licenses.create(
            CUSTOMER, SUBSCRIPTION, server_product.product_id, LicenseType.TIME_BASED,
            number_of_seats=25, start_date=start, end_date=start + timedelta(days=365),
            assigned_by="alice",
        )

        assert license.license_id.startswith("LIC-")
        assert license.status == LicenseStatus.ACTIVE

    def test_time_based_requires_end_date(self, licenses, subscription, server_product):
        with pytest.raises(InvalidRequest):
            licenses.create(
                CUSTOMER, SUBSCRIPTION, server_product.product_id, LicenseType.TIME_BASED,
                number_of_seats=5, start_date=utc_now(), assigned_by="alice",
            )

    def test_end_before_start(self, licenses, subscription, server_product):
        """Test end_date earlier than start_date is rejected"""
        start = utc_now()
        with pytest.raises(InvalidRequest):
            licenses.create(
                CUSTOMER, SUBSCRIPTION, server_product.product_id, LicenseType.TIME_BASED,
                number_of_seats=5, start_date=start, end_date=start - timedelta(days=1),
                assigned_by="alice",
            )

    def test_unknown_product(self, licenses, subscription):
        with pytest.raises(NotFound):
            licenses.create(
                CUSTOMER, SUBSCRIPTION, "PROD-NOPE", LicenseType.PERPETUAL,
                number_of_seats=5, start_date=utc_now(), assigned_by="alice",
            )

    def test_subscription_of_other_customer(self, db, licenses, subscription, server_product):
        from update_manager.models.customer import Customer

        other = Customer(customer_id="CUST-OTHER", name="Other", email="o@test.io")
        db.add(other)
        db.commit()

        with pytest.raises(NotFound):
            licenses.create(
                "CUST-OTHER", SUBSCRIPTION, server_product.product_id, LicenseType.PERPETUAL,
                number_of_seats=5, start_date=utc_now(), assigned_by="alice",
            )


class TestUpdateLicense:
    """Test license updates against allocated seats"""

    def test_cannot_shrink_below_allocated(self, db, licenses, locks, tenant, server_product, make_license):
        make_license(server_product.product_id, number_of_seats=10)
        SeatAccountant(db, event_bus=EventBus(), locks=locks).allocate(
            CUSTOMER, SUBSCRIPTION, "LIC-1", seats_allocated=7, allocated_by="alice", tenant_ref="TENANT-EU"
        )

        with pytest.raises(InvalidRequest):
            licenses.update(CUSTOMER, SUBSCRIPTION, "LIC-1", {"number_of_seats": 6})

        assert licenses.update(CUSTOMER, SUBSCRIPTION, "LIC-1", {"number_of_seats": 7}).number_of_seats == 7

    def test_null_seat_count_rejected(self, db, licenses, locks, tenant, server_product, make_license):
        """A null seat count cannot bypass the allocated seats check"""
        make_license(server_product.product_id, number_of_seats=10)
        SeatAccountant(db, event_bus=EventBus(), locks=locks).allocate(
            CUSTOMER, SUBSCRIPTION, "LIC-1", seats_allocated=3, allocated_by="alice", tenant_ref="TENANT-EU"
        )

        with pytest.raises(InvalidRequest):
            licenses.update(CUSTOMER, SUBSCRIPTION, "LIC-1", {"number_of_seats": None})

        assert licenses.get(CUSTOMER, SUBSCRIPTION, "LIC-1").number_of_seats == 10

    def test_update_end_before_start(self, licenses, server_product, make_license):
        license = make_license(
            server_product.product_id,
            license_type=LicenseType.TIME_BASED,
            end_date=utc_now() + timedelta(days=10),
        )

        with pytest.raises(InvalidRequest):
            licenses.update(
                CUSTOMER, SUBSCRIPTION, "LIC-1", {"end_date": license.start_date - timedelta(days=1)}
            )


class TestRenewLicense:
    """Test renewal of time based licenses"""

    def test_renew_reactivates_expired(self, db, licenses, server_product, make_license):
        license = make_license(
            server_product.product_id,
            license_type=LicenseType.TIME_BASED,
            end_date=utc_now() - timedelta(days=1),
        )
        license.status = LicenseStatus.EXPIRED
        db.add(license)
        db.commit()

        renewed = licenses.renew(CUSTOMER, SUBSCRIPTION, "LIC-1", utc_now() + timedelta(days=30))

        assert renewed.status == LicenseStatus.ACTIVE

    def test_renew_with_same_end_date_keeps_status(self, db, licenses, server_product, make_license):
        """Test renewing with the existing end date does not change the status"""
        end = utc_now() - timedelta(days=1)
        license = make_license(server_product.product_id, license_type=LicenseType.TIME_BASED, end_date=end)
        license.status = LicenseStatus.EXPIRED
        db.add(license)
        db.commit()

        renewed = licenses.renew(CUSTOMER, SUBSCRIPTION, "LIC-1", end)

        assert renewed.status == LicenseStatus.EXPIRED

    def test_renew_perpetual(self, licenses, server_product, make_license):
        make_license(server_product.product_id)
        with pytest.raises(InvalidRequest):
            licenses.renew(CUSTOMER, SUBSCRIPTION, "LIC-1", utc_now() + timedelta(days=30))

    def test_renew_revoked(self, licenses, server_product, make_license):
        make_license(
            server_product.product_id,
            license_type=LicenseType.TIME_BASED,
            end_date=utc_now() + timedelta(days=1),
        )
        licenses.revoke(CUSTOMER, SUBSCRIPTION, "LIC-1")

        with pytest.raises(InvalidState):
            licenses.renew(CUSTOMER, SUBSCRIPTION, "LIC-1", utc_now() + timedelta(days=30))

    def test_renew_before_start(self, licenses, server_product, make_license):
        license = make_license(
            server_product.product_id,
            license_type=LicenseType.TIME_BASED,
            end_date=utc_now() + timedelta(days=1),
        )
        with pytest.raises(InvalidRequest):
            licenses.renew(CUSTOMER, SUBSCRIPTION, "LIC-1", license.start_date - timedelta(days=1))


class TestSubscriptions:
    """Test subscription delete guard and renewal"""

    def test_delete_with_license_refused(self, db, server_product, make_license):
        make_license(server_product.product_id)
        with pytest.raises(HasDependents):
            SubscriptionService(db).delete(CUSTOMER, SUBSCRIPTION)

    def test_delete_without_license(self, db, subscription):
        service = SubscriptionService(db)
        service.delete(CUSTOMER, SUBSCRIPTION)

        with pytest.raises(NotFound):
            service.get(CUSTOMER, SUBSCRIPTION)

    def test_renew_expired_subscription(self, db, subscription):
        subscription.status = SubscriptionStatus.EXPIRED
        db.add(subscription)
        db.commit()

        renewed = SubscriptionService(db).renew(CUSTOMER, SUBSCRIPTION, utc_now() + timedelta(days=90))

        assert renewed.status == SubscriptionStatus.ACTIVE
