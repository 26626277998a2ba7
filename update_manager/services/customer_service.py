"""
Customers and tenants
"""

from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from update_manager.core.errors import Conflict, HasDependents, NotFound
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.customer import AccountStatus, Customer, NotificationPreferences
from update_manager.models.deployment import Deployment
from update_manager.models.filters import CustomerFilter, TenantFilter
from update_manager.models.license_allocation import LicenseAllocation
from update_manager.models.tenant import Tenant
from update_manager.services.lookup import generate_business_id, get_by_ref

logger = structlog.get_logger(__name__)


def deployment_breakdown(deployments: List[Deployment]) -> Dict[str, Any]:
    """Counts shared by customer and tenant statistics"""
    return {
        "total_deployments": len(deployments),
        "total_users": sum(d.number_of_users or 0 for d in deployments),
        "deployments_by_product": dict(Counter(d.product_id for d in deployments)),
        "deployments_by_type": dict(Counter(d.deployment_type.value for d in deployments)),
    }


class CustomerService:

    def __init__(self, session: Session):
        self.session = session

    # Customers
    def get_customer(self, ref) -> Customer:
        return get_by_ref(self.session, Customer, "customer_id", ref, "Customer")

    def create_customer(
        self,
        name: str,
        email: str,
        customer_id: Optional[str] = None,
        organization_name: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        account_status: AccountStatus = AccountStatus.ACTIVE,
        notification_preferences: Optional[NotificationPreferences] = None
    ) -> Customer:
        customer = Customer(
            customer_id=customer_id or generate_business_id("CUST"),
            name=name,
            email=email,
            organization_name=organization_name,
            phone=phone,
            address=address,
            account_status=account_status,
            notification_preferences=(notification_preferences or NotificationPreferences()).model_dump(),
        )
        self._ensure_unique_customer(customer)
        self._commit(customer, f"Customer {customer.customer_id} already exists")
        logger.info(f"Created customer {customer.customer_id}")
        return customer

    def update_customer(self, ref, patch: Dict[str, Any]) -> Customer:
        customer = self.get_customer(ref)
        if "email" in patch and patch["email"] != customer.email:
            if self._email_taken(patch["email"]):
                raise Conflict(f"Email {patch['email']} is already in use")
        for key, value in patch.items():
            if key == "notification_preferences" and value is not None:
                value = NotificationPreferences.model_validate(value).model_dump()
            setattr(customer, key, value)
        customer.updated_at = utc_now()
        self._commit(customer, f"Email {customer.email} is already in use")
        return customer

    def delete_customer(self, ref) -> Customer:
        """Soft delete, refused while the customer still has tenants"""
        customer = self.get_customer(ref)
        tenant_count = self.session.exec(
            select(func.count()).select_from(Tenant).where(Tenant.customer_id == customer.id)
        ).one()
        if tenant_count:
            raise HasDependents(
                f"Customer {customer.customer_id} has {tenant_count} tenant(s), delete them first"
            )
        customer.account_status = AccountStatus.INACTIVE
        customer.updated_at = utc_now()
        self._commit(customer, "Failed to delete customer")
        logger.info(f"Deactivated customer {customer.customer_id}")
        return customer

    def list_customers(self, filters: CustomerFilter, pagination: Pagination) -> Tuple[List[Customer], int]:
        clauses = filters.clauses()
        total = self.session.exec(select(func.count()).select_from(Customer).where(*clauses)).one()
        rows = self.session.exec(
            select(Customer)
            .where(*clauses)
            .order_by(Customer.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).all()
        return list(rows), total

    def customer_statistics(self, ref) -> Dict[str, Any]:
        customer = self.get_customer(ref)
        tenants = self.tenants_of(customer)
        deployments = self._deployments_of([t.id for t in tenants])
        stats = {"customer_id": customer.customer_id, "total_tenants": len(tenants)}
        stats.update(deployment_breakdown(deployments))
        return stats

    # Tenants
    def get_tenant(self, customer_ref, tenant_ref) -> Tuple[Customer, Tenant]:
        """Resolve a tenant that must belong to the given customer"""
        customer = self.get_customer(customer_ref)
        tenant = get_by_ref(self.session, Tenant, "tenant_id", tenant_ref, "Tenant")
        if tenant.customer_id != customer.id:
            raise NotFound.for_resource("Tenant", tenant_ref)
        return customer, tenant

    def tenants_of(self, customer: Customer) -> List[Tenant]:
        return list(self.session.exec(
            select(Tenant).where(Tenant.customer_id == customer.id).order_by(Tenant.created_at)
        ).all())

    def create_tenant(
        self,
        customer_ref,
        name: str,
        tenant_id: Optional[str] = None,
        description: Optional[str] = None
    ) -> Tenant:
        customer = self.get_customer(customer_ref)
        tenant = Tenant(
            tenant_id=tenant_id or generate_business_id("TENANT"),
            customer_id=customer.id,
            name=name,
            description=description,
        )
        self._commit(tenant, f"Tenant {tenant.tenant_id} already exists")
        logger.info(f"Created tenant {tenant.tenant_id} for customer {customer.customer_id}")
        return tenant

    def update_tenant(self, customer_ref, tenant_ref, patch: Dict[str, Any]) -> Tenant:
        _, tenant = self.get_tenant(customer_ref, tenant_ref)
        for key, value in patch.items():
            setattr(tenant, key, value)
        tenant.updated_at = utc_now()
        self._commit(tenant, "Failed to update tenant")
        return tenant

    def delete_tenant(self, customer_ref, tenant_ref):
        """Hard delete, refused while the tenant has deployments or allocations"""
        _, tenant = self.get_tenant(customer_ref, tenant_ref)
        deployment_count = self.session.exec(
            select(func.count()).select_from(Deployment).where(Deployment.tenant_id == tenant.id)
        ).one()
        if deployment_count:
            raise HasDependents(
                f"Tenant {tenant.tenant_id} has {deployment_count} deployment(s), delete them first"
            )
        allocation_count = self.session.exec(
            select(func.count()).select_from(LicenseAllocation)
            .where(LicenseAllocation.tenant_id == tenant.id)
        ).one()
        if allocation_count:
            raise HasDependents(f"Tenant {tenant.tenant_id} has license allocations")

        business_id = tenant.tenant_id
        self.session.delete(tenant)
        self.session.commit()
        logger.info(f"Deleted tenant {business_id}")

    def list_tenants(self, customer_ref, filters: TenantFilter, pagination: Pagination) -> Tuple[List[Tenant], int]:
        customer = self.get_customer(customer_ref)
        filters.customer_id = customer.id
        clauses = filters.clauses()
        total = self.session.exec(select(func.count()).select_from(Tenant).where(*clauses)).one()
        rows = self.session.exec(
            select(Tenant)
            .where(*clauses)
            .order_by(Tenant.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).all()
        return list(rows), total

    def tenant_statistics(self, customer_ref, tenant_ref) -> Dict[str, Any]:
        _, tenant = self.get_tenant(customer_ref, tenant_ref)
        stats = {"tenant_id": tenant.tenant_id}
        stats.update(deployment_breakdown(self._deployments_of([tenant.id])))
        return stats

    def _deployments_of(self, tenant_ids) -> List[Deployment]:
        if not tenant_ids:
            return []
        return list(self.session.exec(
            select(Deployment).where(Deployment.tenant_id.in_(tenant_ids))
        ).all())

    def _email_taken(self, email: str) -> bool:
        return self.session.exec(select(Customer.id).where(Customer.email == email)).first() is not None

    def _ensure_unique_customer(self, customer: Customer):
        if self._email_taken(customer.email):
            raise Conflict(f"Email {customer.email} is already in use")
        existing = self.session.exec(
            select(Customer.id).where(Customer.customer_id == customer.customer_id)
        ).first()
        if existing is not None:
            raise Conflict(f"Customer {customer.customer_id} already exists")

    def _commit(self, row, conflict_message: str):
        self.session.add(row)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict(conflict_message)
        self.session.refresh(row)
