"""
Typed filter records for list queries

Each filter turns its populated fields into SQLAlchemy where clauses.
"""

from dataclasses import dataclass
from typing import List, Optional
import uuid

from sqlalchemy import or_

from update_manager.models.audit_log import AuditAction, AuditLog
from update_manager.models.compatibility import CompatibilityMatrix, ValidationStatus
from update_manager.models.customer import AccountStatus, Customer
from update_manager.models.deployment import Deployment, DeploymentStatus, DeploymentType
from update_manager.models.license import License, LicenseStatus, LicenseType
from update_manager.models.license_allocation import AllocationStatus, LicenseAllocation
from update_manager.models.product import Product, ProductType
from update_manager.models.subscription import Subscription, SubscriptionStatus
from update_manager.models.tenant import Tenant, TenantStatus
from update_manager.models.update_detection import UpdateDetection
from update_manager.models.update_rollout import RolloutStatus, UpdateRollout
from update_manager.models.version import ReleaseType, Version, VersionState


@dataclass
class ProductFilter:
    type: Optional[ProductType] = None
    is_active: Optional[bool] = None
    search: Optional[str] = None

    def clauses(self) -> List:
        clauses = []
        if self.type is not None:
            clauses.append(Product.type == self.type)
        if self.is_active is not None:
            clauses.append(Product.is_active == self.is_active)
        if self.search:
            pattern = f"%{self.search}%"
            clauses.append(or_(Product.name.ilike(pattern), Product.product_id.ilike(pattern)))
        return clauses


@dataclass
class VersionFilter:
    product_id: Optional[str] = None
    state: Optional[VersionState] = None
    release_type: Optional[ReleaseType] = None

    def clauses(self) -> List:
        clauses = []
        if self.product_id is not None:
            clauses.append(Version.product_id == self.product_id)
        if self.state is not None:
            clauses.append(Version.state == self.state)
        if self.release_type is not None:
            clauses.append(Version.release_type == self.release_type)
        return clauses


@dataclass
class CustomerFilter:
    account_status: Optional[AccountStatus] = None
    search: Optional[str] = None

    def clauses(self) -> List:
        clauses = []
        if self.account_status is not None:
            clauses.append(Customer.account_status == self.account_status)
        if self.search:
            pattern = f"%{self.search}%"
            clauses.append(or_(
                Customer.name.ilike(pattern),
                Customer.organization_name.ilike(pattern),
                Customer.email.ilike(pattern),
            ))
        return clauses


@dataclass
class TenantFilter:
    customer_id: Optional[uuid.UUID] = None
    status: Optional[TenantStatus] = None

    def clauses(self) -> List:
        clauses = []
        if self.customer_id is not None:
            clauses.append(Tenant.customer_id == self.customer_id)
        if self.status is not None:
            clauses.append(Tenant.status == self.status)
        return clauses


@dataclass
class DeploymentFilter:
    tenant_id: Optional[uuid.UUID] = None
    tenant_ids: Optional[List[uuid.UUID]] = None
    product_id: Optional[str] = None
    deployment_type: Optional[DeploymentType] = None
    status: Optional[DeploymentStatus] = None

    def clauses(self) -> List:
        clauses = []
        if self.tenant_id is not None:
            clauses.append(Deployment.tenant_id == self.tenant_id)
        if self.tenant_ids is not None:
            clauses.append(Deployment.tenant_id.in_(self.tenant_ids))
        if self.product_id is not None:
            clauses.append(Deployment.product_id == self.product_id)
        if self.deployment_type is not None:
            clauses.append(Deployment.deployment_type == self.deployment_type)
        if self.status is not None:
            clauses.append(Deployment.status == self.status)
        return clauses


@dataclass
class SubscriptionFilter:
    customer_id: Optional[uuid.UUID] = None
    status: Optional[SubscriptionStatus] = None

    def clauses(self) -> List:
        clauses = []
        if self.customer_id is not None:
            clauses.append(Subscription.customer_id == self.customer_id)
        if self.status is not None:
            clauses.append(Subscription.status == self.status)
        return clauses


@dataclass
class LicenseFilter:
    subscription_id: Optional[uuid.UUID] = None
    product_id: Optional[str] = None
    license_type: Optional[LicenseType] = None
    status: Optional[LicenseStatus] = None

    def clauses(self) -> List:
        clauses = []
        if self.subscription_id is not None:
            clauses.append(License.subscription_id == self.subscription_id)
        if self.product_id is not None:
            clauses.append(License.product_id == self.product_id)
        if self.license_type is not None:
            clauses.append(License.license_type == self.license_type)
        if self.status is not None:
            clauses.append(License.status == self.status)
        return clauses


@dataclass
class AllocationFilter:
    license_id: Optional[uuid.UUID] = None
    tenant_id: Optional[uuid.UUID] = None
    deployment_id: Optional[uuid.UUID] = None
    status: Optional[AllocationStatus] = None

    def clauses(self) -> List:
        clauses = []
        if self.license_id is not None:
            clauses.append(LicenseAllocation.license_id == self.license_id)
        if self.tenant_id is not None:
            clauses.append(LicenseAllocation.tenant_id == self.tenant_id)
        if self.deployment_id is not None:
            clauses.append(LicenseAllocation.deployment_id == self.deployment_id)
        if self.status is not None:
            clauses.append(LicenseAllocation.status == self.status)
        return clauses


@dataclass
class CompatibilityFilter:
    product_id: Optional[str] = None
    validation_status: Optional[ValidationStatus] = None

    def clauses(self) -> List:
        clauses = []
        if self.product_id is not None:
            clauses.append(CompatibilityMatrix.product_id == self.product_id)
        if self.validation_status is not None:
            clauses.append(CompatibilityMatrix.validation_status == self.validation_status)
        return clauses


@dataclass
class DetectionFilter:
    endpoint_id: Optional[str] = None
    product_id: Optional[str] = None

    def clauses(self) -> List:
        clauses = []
        if self.endpoint_id is not None:
            clauses.append(UpdateDetection.endpoint_id == self.endpoint_id)
        if self.product_id is not None:
            clauses.append(UpdateDetection.product_id == self.product_id)
        return clauses


@dataclass
class RolloutFilter:
    endpoint_id: Optional[str] = None
    product_id: Optional[str] = None
    status: Optional[RolloutStatus] = None

    def clauses(self) -> List:
        clauses = []
        if self.endpoint_id is not None:
            clauses.append(UpdateRollout.endpoint_id == self.endpoint_id)
        if self.product_id is not None:
            clauses.append(UpdateRollout.product_id == self.product_id)
        if self.status is not None:
            clauses.append(UpdateRollout.status == self.status)
        return clauses


@dataclass
class AuditLogFilter:
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    user_id: Optional[str] = None
    action: Optional[AuditAction] = None

    def clauses(self) -> List:
        clauses = []
        if self.resource_type is not None:
            clauses.append(AuditLog.resource_type == self.resource_type)
        if self.resource_id is not None:
            clauses.append(AuditLog.resource_id == self.resource_id)
        if self.user_id is not None:
            clauses.append(AuditLog.user_id == self.user_id)
        if self.action is not None:
            clauses.append(AuditLog.action == self.action)
        return clauses


@dataclass
class PendingUpdatesFilter:
    """Filter of the tenant, customer and fleet update views"""
    customer_id: Optional[str] = None
    tenant_id: Optional[str] = None
    product_id: Optional[str] = None
    deployment_type: Optional[DeploymentType] = None
    priority: Optional[str] = None
