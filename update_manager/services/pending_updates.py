"""
Pending-updates resolver

For a deployment, the candidates are released versions of its product that
are not past their eol_date and compare greater than the installed version.
Candidates are ordered by release_date, newest first, and the first one is
the latest version.

Per-deployment results are cached for a configurable TTL under the key
"deployment:<id>". Tenant, customer and fleet roll-ups are computed from the
per-deployment results and are not cached themselves.
"""

from collections import Counter
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
import time
import uuid

from sqlmodel import Session, SQLModel
import structlog

from update_manager.core.concurrency import ReadWriteLock
from update_manager.core.config import get_settings
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.customer import Customer
from update_manager.models.deployment import Deployment, DeploymentType
from update_manager.models.filters import DeploymentFilter, PendingUpdatesFilter
from update_manager.models.tenant import Tenant
from update_manager.models.version import ReleaseType, Version
from update_manager.services.customer_service import CustomerService
from update_manager.services.deployment_registry import DeploymentRegistry
from update_manager.services.lookup import find_by_ref
from update_manager.services.semver import GapType, InvalidVersion, gap_type, semver_gt
from update_manager.services.version_store import VersionStore

logger = structlog.get_logger(__name__)


class UpdatePriority(str, Enum):
    CRITICAL = "critical"       # A security release is pending
    HIGH = "high"               # Major gap on a production deployment
    NORMAL = "normal"


class AvailableUpdate(SQLModel):
    version_id: uuid.UUID
    version_number: str
    release_date: datetime
    release_type: ReleaseType
    is_security_update: bool
    compatibility_status: str = "compatible"
    upgrade_path: List[str] = []


class DeploymentUpdates(SQLModel):
    """Pending updates of one deployment"""
    deployment_id: str
    product_id: str
    current_version: str
    latest_version: Optional[str] = None
    update_count: int = 0
    priority: UpdatePriority = UpdatePriority.NORMAL
    version_gap_type: GapType = GapType.NONE
    available_updates: List[AvailableUpdate] = []
    deployment_type: DeploymentType
    tenant_id: Optional[str] = None
    tenant_name: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None


def cache_key(deployment_id: uuid.UUID) -> str:
    return f"deployment:{deployment_id}"


def classify_priority(
    candidates: List[Version],
    gap: GapType,
    deployment_type: DeploymentType
) -> UpdatePriority:
    if any(v.release_type == ReleaseType.SECURITY for v in candidates):
        return UpdatePriority.CRITICAL
    if gap == GapType.MAJOR and deployment_type == DeploymentType.PRODUCTION:
        return UpdatePriority.HIGH
    return UpdatePriority.NORMAL


class PendingUpdatesCache:
    """TTL map guarded by a reader/writer lock, entries expire lazily on read.

    A generation counter is bumped by every eviction so that a result
    computed before an eviction is not stored after it.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = ReadWriteLock()
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._lock.read():
            return self._generation

    def get(self, key: str) -> Optional[Any]:
        with self._lock.read():
            entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            with self._lock.write():
                current = self._entries.get(key)
                if current is not None and current[1] <= self._clock():
                    del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, generation: Optional[int] = None) -> bool:
        with self._lock.write():
            if generation is not None and generation != self._generation:
                return False
            self._entries[key] = (value, self._clock() + self.ttl_seconds)
            return True

    def evict(self, key: str):
        with self._lock.write():
            self._entries.pop(key, None)
            self._generation += 1

    def clear(self):
        with self._lock.write():
            self._entries.clear()
            self._generation += 1

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)


# Process-wide cache shared by every resolver
pending_updates_cache = PendingUpdatesCache(get_settings().PENDING_UPDATES_CACHE_TTL_SECONDS)


class PendingUpdatesResolver:

    def __init__(
        self,
        session: Session,
        cache: Optional[PendingUpdatesCache] = None,
        now: Callable[[], datetime] = utc_now,
        scan_batch_size: Optional[int] = None
    ):
        self.session = session
        self.cache = cache if cache is not None else pending_updates_cache
        self.now = now
        self.scan_batch_size = scan_batch_size or get_settings().FLEET_SCAN_BATCH_SIZE
        self.versions = VersionStore(session)
        self.registry = DeploymentRegistry(session)
        self.customers = CustomerService(session)

    # Per deployment
    def updates_for_deployment(self, ref) -> DeploymentUpdates:
        deployment = self.registry.resolve(ref)
        return self._updates_for(deployment)

    def updates_for_tenant_deployment(self, customer_ref, tenant_ref, deployment_ref) -> DeploymentUpdates:
        deployment = self.registry.get(customer_ref, tenant_ref, deployment_ref)
        return self._updates_for(deployment)

    def _updates_for(self, deployment: Deployment) -> DeploymentUpdates:
        key = cache_key(deployment.id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        generation = self.cache.generation
        result = self.compute(deployment)
        self.cache.set(key, result, generation)
        return result

    def candidates(self, deployment: Deployment) -> List[Version]:
        now = self.now()
        candidates = []
        for version in self.versions.released_for_product(deployment.product_id):
            if not version.is_update_candidate(now):
                continue
            try:
                if semver_gt(version.version_number, deployment.installed_version):
                    candidates.append(version)
            except InvalidVersion:
                logger.warning(
                    f"Skipping version {version.version_number} of {version.product_id}: "
                    f"not comparable with {deployment.installed_version}"
                )
        candidates.sort(key=lambda v: v.release_date, reverse=True)
        return candidates

    def compute(self, deployment: Deployment) -> DeploymentUpdates:
        candidates = self.candidates(deployment)
        tenant, customer = self.registry.owners(deployment)

        latest = candidates[0].version_number if candidates else None
        gap = gap_type(deployment.installed_version, latest) if latest else GapType.NONE

        return DeploymentUpdates(
            deployment_id=deployment.deployment_id,
            product_id=deployment.product_id,
            current_version=deployment.installed_version,
            latest_version=latest,
            update_count=len(candidates),
            priority=classify_priority(candidates, gap, deployment.deployment_type),
            version_gap_type=gap,
            available_updates=[
                AvailableUpdate(
                    version_id=v.id,
                    version_number=v.version_number,
                    release_date=v.release_date,
                    release_type=v.release_type,
                    is_security_update=v.release_type == ReleaseType.SECURITY,
                    upgrade_path=[v.version_number],
                )
                for v in candidates
            ],
            deployment_type=deployment.deployment_type,
            tenant_id=tenant.tenant_id if tenant else None,
            tenant_name=tenant.name if tenant else None,
            customer_id=customer.customer_id if customer else None,
            customer_name=customer.name if customer else None,
        )

    def _collect(self, deployments: List[Deployment], priority: Optional[str]) -> List[DeploymentUpdates]:
        """Resolve each deployment, skipping the ones that fail"""
        results = []
        for deployment in deployments:
            try:
                result = self._updates_for(deployment)
            except Exception as e:
                logger.warning(f"Skipping deployment {deployment.deployment_id} in aggregate: {e}")
                continue
            if priority and result.priority.value != priority:
                continue
            results.append(result)
        return results

    # Roll-ups
    def updates_for_tenant(self, customer_ref, tenant_ref, filters: PendingUpdatesFilter) -> Dict[str, Any]:
        _, tenant = self.customers.get_tenant(customer_ref, tenant_ref)
        return self._tenant_summary(tenant, filters)

    def _tenant_summary(self, tenant: Tenant, filters: PendingUpdatesFilter) -> Dict[str, Any]:
        deployments = self.registry.find(DeploymentFilter(
            tenant_id=tenant.id,
            product_id=filters.product_id,
            deployment_type=filters.deployment_type,
        ))
        results = self._collect(deployments, filters.priority)
        with_updates = [r for r in results if r.update_count > 0]
        return {
            "tenant_id": tenant.tenant_id,
            "tenant_name": tenant.name,
            "total_deployments": len(results),
            "deployments_with_updates": len(with_updates),
            "total_pending_update_count": sum(r.update_count for r in with_updates),
            "by_priority": dict(Counter(r.priority.value for r in with_updates)),
            "by_product": dict(Counter(r.product_id for r in with_updates)),
            "deployments": results,
        }

    def updates_for_customer(self, customer_ref, filters: PendingUpdatesFilter) -> Dict[str, Any]:
        customer = self.customers.get_customer(customer_ref)
        tenants = self.customers.tenants_of(customer)

        summaries = [self._tenant_summary(tenant, filters) for tenant in tenants]
        by_priority: Counter = Counter()
        by_product: Counter = Counter()
        for summary in summaries:
            by_priority.update(summary["by_priority"])
            by_product.update(summary["by_product"])

        return {
            "customer_id": customer.customer_id,
            "customer_name": customer.name,
            "total_deployments": sum(s["total_deployments"] for s in summaries),
            "deployments_with_updates": sum(s["deployments_with_updates"] for s in summaries),
            "total_pending_update_count": sum(s["total_pending_update_count"] for s in summaries),
            "by_priority": dict(by_priority),
            "by_product": dict(by_product),
            "by_tenant": {s["tenant_id"]: s["deployments_with_updates"] for s in summaries},
            "tenants": summaries,
        }

    def updates_for_fleet(
        self,
        filters: PendingUpdatesFilter,
        pagination: Pagination
    ) -> Tuple[List[DeploymentUpdates], int]:
        """Every deployment with at least one pending update, one page at a time"""
        deployment_filter = DeploymentFilter(
            product_id=filters.product_id,
            deployment_type=filters.deployment_type,
        )

        if filters.tenant_id is not None:
            tenant = find_by_ref(self.session, Tenant, "tenant_id", filters.tenant_id)
            if tenant is None:
                return [], 0
            deployment_filter.tenant_id = tenant.id
        if filters.customer_id is not None:
            customer = find_by_ref(self.session, Customer, "customer_id", filters.customer_id)
            if customer is None:
                return [], 0
            deployment_filter.tenant_ids = [t.id for t in self.customers.tenants_of(customer)]

        # Batched scan, every matching deployment is visited
        results = []
        offset = 0
        while True:
            deployments = self.registry.find(deployment_filter, limit=self.scan_batch_size, offset=offset)
            results.extend(r for r in self._collect(deployments, filters.priority) if r.update_count > 0)
            if len(deployments) < self.scan_batch_size:
                break
            offset += self.scan_batch_size
        return pagination.slice(results), len(results)
