"""
Tests for pending update resolution and its roll-ups
"""

from datetime import timedelta

import pytest
from sqlmodel import Session

from update_manager.core.events import EventBus
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.deployment import DeploymentType
from update_manager.models.filters import PendingUpdatesFilter
from update_manager.models.tenant import Tenant
from update_manager.models.version import ReleaseType, VersionState
from update_manager.services.cache_invalidator import CacheInvalidator
from update_manager.services.deployment_registry import DeploymentRegistry
from update_manager.services.pending_updates import (
    PendingUpdatesCache, PendingUpdatesResolver, UpdatePriority
)
from update_manager.services.semver import GapType
from update_manager.services.version_lifecycle import VersionLifecycle


@pytest.fixture
def cache() -> PendingUpdatesCache:
    return PendingUpdatesCache(ttl_seconds=300)


@pytest.fixture
def bus(cache: PendingUpdatesCache) -> EventBus:
    """Event bus wired to the test cache"""
    bus = EventBus()
    CacheInvalidator(cache).register(bus)
    return bus


@pytest.fixture
def resolver(db: Session, cache: PendingUpdatesCache) -> PendingUpdatesResolver:
    return PendingUpdatesResolver(db, cache=cache)


class TestCandidates:
    """Test candidate selection for one deployment"""

    def test_only_newer_released_versions(self, resolver, tenant, server_product, make_version, make_deployment):
        now = utc_now()
        product_id = server_product.product_id
        make_version(product_id, "0.9.0", release_date=now - timedelta(days=30))
        make_version(product_id, "1.0.0", release_date=now - timedelta(days=20))
        make_version(product_id, "1.1.0", release_date=now - timedelta(days=10))
        make_version(product_id, "1.2.0", release_date=now - timedelta(days=5))
        make_version(product_id, "1.3.0", state=VersionState.APPROVED)
        make_version(product_id, "1.0.5", release_date=now - timedelta(days=15), eol_date=now - timedelta(days=1))
        deployment = make_deployment(tenant, product_id, "1.0.0")

        result = resolver.updates_for_deployment(deployment.deployment_id)

        assert [u.version_number for u in result.available_updates] == ["1.2.0", "1.1.0"]
        assert result.latest_version == "1.2.0"
        assert result.update_count == 2
        assert result.version_gap_type == GapType.MINOR
        assert result.tenant_id == tenant.tenant_id
        assert result.customer_id == "CUST-ACME"

    def test_other_products_ignored(self, resolver, tenant, server_product, client_product, make_version, make_deployment):
        make_version(client_product.product_id, "5.0.0")
        deployment = make_deployment(tenant, server_product.product_id, "1.0.0")

        result = resolver.updates_for_deployment(deployment.id)

        assert result.update_count == 0
        assert result.latest_version is None
        assert result.version_gap_type == GapType.NONE
        assert result.priority == UpdatePriority.NORMAL

    def test_latest_is_newest_release_date(self, resolver, tenant, server_product, make_version, make_deployment):
        """Test the latest version is picked by release date, not by number"""
        now = utc_now()
        make_version(server_product.product_id, "3.0.0", release_date=now - timedelta(days=10))
        make_version(server_product.product_id, "2.5.0", release_date=now - timedelta(days=1))
        deployment = make_deployment(tenant, server_product.product_id, "2.0.0")

        assert resolver.updates_for_deployment(deployment.id).latest_version == "2.5.0"


class TestCacheInvalidationOnRelease:
    """Test releases invalidate cached results"""

    def test_release_makes_update_visible(self, db, resolver, bus, tenant, server_product, make_version, make_deployment):
        deployment = make_deployment(tenant, server_product.product_id, "1.0.0")
        assert resolver.updates_for_deployment(deployment.id).update_count == 0

        version = make_version(server_product.product_id, "1.1.0", state=VersionState.APPROVED)
        VersionLifecycle(db, event_bus=bus).release(version.id, "admin")

        result = resolver.updates_for_deployment(deployment.id)
        assert result.update_count == 1
        assert result.latest_version == "1.1.0"
        assert result.version_gap_type == GapType.MINOR
        assert result.priority == UpdatePriority.NORMAL

    def test_deployment_change_evicts_entry(self, db, resolver, bus, tenant, server_product, make_version, make_deployment):
        make_version(server_product.product_id, "2.0.0")
        deployment = make_deployment(tenant, server_product.product_id, "1.0.0")
        assert resolver.updates_for_deployment(deployment.id).update_count == 1

        DeploymentRegistry(db, event_bus=bus).update(
            "CUST-ACME", tenant.tenant_id, deployment.deployment_id, {"installed_version": "2.0.0"}
        )

        assert resolver.updates_for_deployment(deployment.id).update_count == 0

    def test_repeated_calls_hit_cache(self, resolver, cache, tenant, server_product, make_version, make_deployment):
        make_version(server_product.product_id, "2.0.0")
        deployment = make_deployment(tenant, server_product.product_id, "1.0.0")

        first = resolver.updates_for_deployment(deployment.id)
        second = resolver.updates_for_deployment(deployment.id)

        assert second is first
        assert len(cache) == 1


class TestPriority:
    """Test the priority ladder"""

    def test_security_candidate_is_critical(self, resolver, tenant, server_product, make_version, make_deployment):
        make_version(server_product.product_id, "1.0.1", release_type=ReleaseType.SECURITY)
        deployment = make_deployment(tenant, server_product.product_id, "1.0.0")

        result = resolver.updates_for_deployment(deployment.id)

        assert result.priority == UpdatePriority.CRITICAL
        assert result.available_updates[0].is_security_update is True

    def test_major_gap_on_production_is_high(self, resolver, tenant, server_product, make_version, make_deployment):
        make_version(server_product.product_id, "2.0.0", release_type=ReleaseType.MAJOR)
        deployment = make_deployment(tenant, server_product.product_id, "1.0.0")

        result = resolver.updates_for_deployment(deployment.id)

        assert result.version_gap_type == GapType.MAJOR
        assert result.priority == UpdatePriority.HIGH

    def test_major_gap_on_uat_is_normal(self, resolver, tenant, server_product, make_version, make_deployment):
        make_version(server_product.product_id, "2.0.0", release_type=ReleaseType.MAJOR)
        deployment = make_deployment(tenant, server_product.product_id, "1.0.0", DeploymentType.UAT)

        assert resolver.updates_for_deployment(deployment.id).priority == UpdatePriority.NORMAL


class TestRollups:
    """Test tenant, customer and fleet aggregates"""

    @pytest.fixture
    def fleet(self, db, tenant, server_product, client_product, make_version, make_deployment):
        """Two tenants, three deployments, two of them behind"""
        second = Tenant(tenant_id="TENANT-US", customer_id=tenant.customer_id, name="Acme US")
        db.add(second)
        db.commit()
        db.refresh(second)

        make_version(server_product.product_id, "2.0.0", release_type=ReleaseType.MAJOR)
        make_version(client_product.product_id, "1.0.1", release_type=ReleaseType.SECURITY)
        make_deployment(tenant, server_product.product_id, "1.0.0")
        make_deployment(tenant, client_product.product_id, "1.0.1")
        make_deployment(second, client_product.product_id, "1.0.0")
        return tenant, second

    def test_tenant_summary(self, resolver, fleet):
        tenant, _ = fleet

        summary = resolver.updates_for_tenant("CUST-ACME", tenant.tenant_id, PendingUpdatesFilter())

        assert summary["total_deployments"] == 2
        assert summary["deployments_with_updates"] == 1
        assert summary["total_pending_update_count"] == 1
        assert summary["by_priority"] == {"high": 1}
        assert summary["by_product"] == {"PROD-SRV": 1}

    def test_tenant_summary_priority_filter(self, resolver, fleet):
        tenant, _ = fleet

        summary = resolver.updates_for_tenant(
            "CUST-ACME", tenant.tenant_id, PendingUpdatesFilter(priority="critical")
        )

        assert summary["deployments_with_updates"] == 0

    def test_customer_summary(self, resolver, fleet):
        tenant, second = fleet

        summary = resolver.updates_for_customer("CUST-ACME", PendingUpdatesFilter())

        assert summary["total_deployments"] == 3
        assert summary["deployments_with_updates"] == 2
        assert summary["by_priority"] == {"high": 1, "critical": 1}
        assert summary["by_tenant"] == {tenant.tenant_id: 1, second.tenant_id: 1}

    def test_fleet_only_lists_deployments_with_updates(self, resolver, fleet):
        page, total = resolver.updates_for_fleet(PendingUpdatesFilter(), Pagination(page=1, limit=20))

        assert total == 2
        assert {r.product_id for r in page} == {"PROD-SRV", "PROD-CLI"}

    def test_fleet_pagination(self, resolver, fleet):
        page, total = resolver.updates_for_fleet(PendingUpdatesFilter(), Pagination(page=2, limit=1))

        assert total == 2
        assert len(page) == 1

    @pytest.mark.parametrize("batch_size", [1, 2, 3])
    def test_fleet_scan_covers_every_batch(self, db, cache, fleet, batch_size):
        """Deployments beyond the first scan batch are still listed"""
        resolver = PendingUpdatesResolver(db, cache=cache, scan_batch_size=batch_size)

        page, total = resolver.updates_for_fleet(PendingUpdatesFilter(), Pagination(page=1, limit=20))

        assert total == 2
        assert len(page) == 2

    def test_outdated_deployment_after_up_to_date_one_is_listed(
        self, db, cache, tenant, server_product, client_product, make_version, make_deployment
    ):
        make_version(client_product.product_id, "1.1.0")
        make_deployment(tenant, client_product.product_id, "1.1.0")
        make_deployment(tenant, server_product.product_id, "1.0.0")
        make_version(server_product.product_id, "1.2.0")
        resolver = PendingUpdatesResolver(db, cache=cache, scan_batch_size=1)

        page, total = resolver.updates_for_fleet(PendingUpdatesFilter(), Pagination())

        assert total == 1
        assert page[0].product_id == server_product.product_id

    def test_fleet_filters(self, resolver, fleet):
        _, second = fleet

        page, total = resolver.updates_for_fleet(
            PendingUpdatesFilter(tenant_id=second.tenant_id), Pagination()
        )
        assert total == 1
        assert page[0].tenant_id == second.tenant_id

        assert resolver.updates_for_fleet(PendingUpdatesFilter(customer_id="CUST-NONE"), Pagination()) == ([], 0)

    def test_unparsable_installed_version_does_not_break_aggregate(
        self, resolver, tenant, server_product, client_product, make_version, make_deployment
    ):
        make_version(server_product.product_id, "2.0.0")
        make_version(client_product.product_id, "1.0.1")
        make_deployment(tenant, server_product.product_id, "1.0.0")
        make_deployment(tenant, client_product.product_id, "legacy-build")

        summary = resolver.updates_for_tenant("CUST-ACME", tenant.tenant_id, PendingUpdatesFilter())

        assert summary["deployments_with_updates"] == 1
