from update_manager.models.product import Product, ProductType
from update_manager.models.version import (
    Version, VersionState, ReleaseType, PackageType, PackageInfo, ReleaseNotes
)
from update_manager.models.customer import Customer, AccountStatus, NotificationPreferences
from update_manager.models.tenant import Tenant, TenantStatus
from update_manager.models.deployment import Deployment, DeploymentType, DeploymentStatus
from update_manager.models.subscription import Subscription, SubscriptionStatus
from update_manager.models.license import License, LicenseType, LicenseStatus
from update_manager.models.license_allocation import LicenseAllocation, AllocationStatus
from update_manager.models.compatibility import CompatibilityMatrix, ValidationStatus
from update_manager.models.upgrade_path import UpgradePath, PathType
from update_manager.models.update_detection import UpdateDetection
from update_manager.models.update_rollout import UpdateRollout, RolloutStatus
from update_manager.models.audit_log import AuditLog, AuditAction
