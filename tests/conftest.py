"""
Test configuration for pytest
"""

import pytest
import os
from datetime import datetime, timedelta
from typing import Generator, Optional

# Test environment variables
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["PACKAGE_STORAGE_DIR"] = "/tmp/update-manager-test-packages"
os.environ["LOG_LEVEL"] = "WARNING"

from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session

import update_manager.models  # noqa: F401
from update_manager.core.database import build_engine, get_session
from update_manager.core.timeutil import utc_now
from update_manager.models.customer import Customer
from update_manager.models.deployment import Deployment, DeploymentType
from update_manager.models.license import License, LicenseType
from update_manager.models.product import Product, ProductType
from update_manager.models.subscription import Subscription
from update_manager.models.tenant import Tenant
from update_manager.models.version import ReleaseType, Version, VersionState
from update_manager.services.package_storage import PackageStorage
from update_manager.services.pending_updates import pending_updates_cache


@pytest.fixture(scope="session")
def test_engine(tmp_path_factory):
    """File backed SQLite so threads with their own sessions share one database"""
    path = tmp_path_factory.mktemp("db") / "update_manager.db"
    return build_engine(f"sqlite:///{path}")


@pytest.fixture(scope="function")
def db(test_engine) -> Generator[Session, None, None]:
    """Create a clean database session for each test"""
    # Create all tables
    SQLModel.metadata.create_all(test_engine)

    # Create session
    with Session(test_engine) as session:
        yield session

    # Cleanup
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def storage(tmp_path) -> PackageStorage:
    return PackageStorage(str(tmp_path / "packages"), max_bytes=1024 * 1024)


@pytest.fixture
def client(db: Session, test_engine, storage: PackageStorage) -> Generator[TestClient, None, None]:
    """API client bound to the test database and package directory"""
    from update_manager.api.deps import get_package_storage
    from update_manager.main import app

    def override_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_package_storage] = lambda: storage
    pending_updates_cache.clear()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    pending_updates_cache.clear()


# Factories
@pytest.fixture
def server_product(db: Session) -> Product:
    """Create a server product"""
    product = Product(product_id="PROD-SRV", name="Core Server", type=ProductType.SERVER)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def client_product(db: Session) -> Product:
    """Create a client product"""
    product = Product(product_id="PROD-CLI", name="Desktop Client", type=ProductType.CLIENT)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def customer(db: Session) -> Customer:
    customer = Customer(customer_id="CUST-ACME", name="Acme", email="ops@acme.test")
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


@pytest.fixture
def tenant(db: Session, customer: Customer) -> Tenant:
    tenant = Tenant(tenant_id="TENANT-EU", customer_id=customer.id, name="Acme Europe")
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


@pytest.fixture
def subscription(db: Session, customer: Customer) -> Subscription:
    subscription = Subscription(
        subscription_id="SUB-2026",
        customer_id=customer.id,
        name="Enterprise 2026",
        start_date=utc_now() - timedelta(days=30),
    )
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    return subscription


@pytest.fixture
def make_version(db: Session):
    """Insert a version directly in the given state"""

    def factory(
        product_id: str,
        version_number: str,
        state: VersionState = VersionState.RELEASED,
        release_type: ReleaseType = ReleaseType.FEATURE,
        release_date: Optional[datetime] = None,
        eol_date: Optional[datetime] = None,
    ) -> Version:
        version = Version(
            product_id=product_id,
            version_number=version_number,
            state=state,
            release_type=release_type,
            release_date=release_date or utc_now(),
            eol_date=eol_date,
            created_by="tester",
        )
        db.add(version)
        db.commit()
        db.refresh(version)
        return version

    return factory


@pytest.fixture
def make_deployment(db: Session):
    def factory(
        tenant: Tenant,
        product_id: str,
        installed_version: str,
        deployment_type: DeploymentType = DeploymentType.PRODUCTION,
    ) -> Deployment:
        deployment = Deployment(
            deployment_id=f"DEPLOY-{tenant.tenant_id}-{product_id}-{deployment_type.value}".upper(),
            tenant_id=tenant.id,
            product_id=product_id,
            deployment_type=deployment_type,
            installed_version=installed_version,
        )
        db.add(deployment)
        db.commit()
        db.refresh(deployment)
        return deployment

    return factory


@pytest.fixture
def make_license(db: Session, subscription: Subscription):
    def factory(
        product_id: str,
        number_of_seats: int = 10,
        license_type: LicenseType = LicenseType.PERPETUAL,
        end_date: Optional[datetime] = None,
        license_id: str = "LIC-1",
    ) -> License:
        license = License(
            license_id=license_id,
            subscription_id=subscription.id,
            product_id=product_id,
            license_type=license_type,
            number_of_seats=number_of_seats,
            start_date=utc_now() - timedelta(days=30),
            end_date=end_date,
        )
        db.add(license)
        db.commit()
        db.refresh(license)
        return license

    return factory
