"""
Deployment registry

Persists deployments and their installed version. Every mutation publishes
DeploymentChanged so the pending-updates cache can drop its entry.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import uuid

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from update_manager.core.errors import Conflict, HasDependents, InvalidRequest, NotFound
from update_manager.core.events import DeploymentChanged, EventBus, event_bus as default_event_bus
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.customer import Customer
from update_manager.models.deployment import Deployment, DeploymentType
from update_manager.models.filters import DeploymentFilter
from update_manager.models.license_allocation import LicenseAllocation
from update_manager.models.product import Product
from update_manager.models.tenant import Tenant
from update_manager.services.customer_service import CustomerService
from update_manager.services.lookup import find_by_ref, generate_business_id, get_by_ref
from update_manager.services.semver import InvalidVersion, parse_version

logger = structlog.get_logger(__name__)


def validate_installed_version(value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise InvalidRequest("installed_version is required")
    try:
        parse_version(value)
    except InvalidVersion as e:
        raise InvalidRequest(str(e))
    return value.strip()


class DeploymentRegistry:

    def __init__(self, session: Session, event_bus: Optional[EventBus] = None):
        self.session = session
        self.customers = CustomerService(session)
        self.event_bus = event_bus or default_event_bus

    def resolve(self, ref) -> Deployment:
        """Find a deployment by surrogate or business id anywhere in the fleet"""
        return get_by_ref(self.session, Deployment, "deployment_id", ref, "Deployment")

    def get(self, customer_ref, tenant_ref, deployment_ref) -> Deployment:
        _, tenant = self.customers.get_tenant(customer_ref, tenant_ref)
        deployment = find_by_ref(self.session, Deployment, "deployment_id", deployment_ref)
        if deployment is None or deployment.tenant_id != tenant.id:
            raise NotFound.for_resource("Deployment", deployment_ref)
        return deployment

    def owners(self, deployment: Deployment) -> Tuple[Optional[Tenant], Optional[Customer]]:
        tenant = self.session.get(Tenant, deployment.tenant_id)
        customer = self.session.get(Customer, tenant.customer_id) if tenant else None
        return tenant, customer

    def create(
        self,
        customer_ref,
        tenant_ref,
        product_id: str,
        deployment_type: DeploymentType,
        installed_version: str,
        deployment_id: Optional[str] = None,
        number_of_users: Optional[int] = None,
        license_info: Optional[str] = None,
        server_hostname: Optional[str] = None,
        environment_details: Optional[str] = None,
        deployment_date: Optional[datetime] = None
    ) -> Deployment:
        _, tenant = self.customers.get_tenant(customer_ref, tenant_ref)
        product = self._product(product_id)
        installed_version = validate_installed_version(installed_version)
        self._ensure_unique(tenant.id, product.product_id, deployment_type)

        deployment = Deployment(
            deployment_id=deployment_id or generate_business_id("DEPLOY"),
            tenant_id=tenant.id,
            product_id=product.product_id,
            deployment_type=deployment_type,
            installed_version=installed_version,
            number_of_users=number_of_users,
            license_info=license_info,
            server_hostname=server_hostname,
            environment_details=environment_details,
            deployment_date=deployment_date or utc_now(),
        )
        self._commit(deployment)
        logger.info(f"Created deployment {deployment.deployment_id} in tenant {tenant.tenant_id}")
        self._publish(deployment, "created")
        return deployment

    def update(self, customer_ref, tenant_ref, deployment_ref, patch: Dict[str, Any]) -> Deployment:
        deployment = self.get(customer_ref, tenant_ref, deployment_ref)

        if "installed_version" in patch:
            patch["installed_version"] = validate_installed_version(patch["installed_version"])
        new_type = patch.get("deployment_type")
        if new_type is not None and new_type != deployment.deployment_type:
            self._ensure_unique(deployment.tenant_id, deployment.product_id, new_type)

        for key, value in patch.items():
            setattr(deployment, key, value)
        deployment.updated_at = utc_now()
        self._commit(deployment)
        self._publish(deployment, "updated")
        return deployment

    def delete(self, customer_ref, tenant_ref, deployment_ref):
        deployment = self.get(customer_ref, tenant_ref, deployment_ref)
        allocation_count = self.session.exec(
            select(func.count()).select_from(LicenseAllocation)
            .where(LicenseAllocation.deployment_id == deployment.id)
        ).one()
        if allocation_count:
            raise HasDependents(f"Deployment {deployment.deployment_id} has license allocations")

        event = self._event(deployment, "deleted")
        business_id = deployment.deployment_id
        self.session.delete(deployment)
        self.session.commit()
        logger.info(f"Deleted deployment {business_id}")
        self.event_bus.publish(event)

    def list(
        self,
        customer_ref,
        tenant_ref,
        filters: DeploymentFilter,
        pagination: Pagination
    ) -> Tuple[List[Deployment], int]:
        _, tenant = self.customers.get_tenant(customer_ref, tenant_ref)
        filters.tenant_id = tenant.id
        clauses = filters.clauses()
        total = self.session.exec(select(func.count()).select_from(Deployment).where(*clauses)).one()
        rows = self.session.exec(
            select(Deployment)
            .where(*clauses)
            .order_by(Deployment.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).all()
        return list(rows), total

    def find(
        self,
        filters: DeploymentFilter,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Deployment]:
        statement = (
            select(Deployment)
            .where(*filters.clauses())
            .order_by(Deployment.created_at, Deployment.id)
            .offset(offset)
        )
        if limit is not None:
            statement = statement.limit(limit)
        return list(self.session.exec(statement).all())

    def _product(self, product_ref: str) -> Product:
        product = find_by_ref(self.session, Product, "product_id", product_ref)
        if product is None:
            raise NotFound.for_resource("Product", product_ref)
        return product

    def _ensure_unique(self, tenant_id: uuid.UUID, product_id: str, deployment_type: DeploymentType):
        existing = self.session.exec(
            select(Deployment.id).where(
                Deployment.tenant_id == tenant_id,
                Deployment.product_id == product_id,
                Deployment.deployment_type == deployment_type,
            )
        ).first()
        if existing is not None:
            raise Conflict(
                f"Tenant already has a {DeploymentType(deployment_type).value} deployment of {product_id}"
            )

    def _commit(self, deployment: Deployment):
        self.session.add(deployment)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict("Deployment already exists for this tenant, product and type")
        self.session.refresh(deployment)

    def _event(self, deployment: Deployment, change: str) -> DeploymentChanged:
        return DeploymentChanged(
            deployment_id=deployment.id,
            tenant_id=deployment.tenant_id,
            product_id=deployment.product_id,
            change=change,
        )

    def _publish(self, deployment: Deployment, change: str):
        self.event_bus.publish(self._event(deployment, change))
