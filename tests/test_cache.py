"""
Tests for the pending updates cache and its invalidation
"""

import uuid

from update_manager.core.events import DeploymentChanged, EventBus, VersionReleased
from update_manager.services.cache_invalidator import CacheInvalidator
from update_manager.services.pending_updates import PendingUpdatesCache, cache_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestPendingUpdatesCache:
    """Test TTL expiry and generation guard"""

    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        cache = PendingUpdatesCache(ttl_seconds=300, clock=clock)
        cache.set("deployment:1", "result")

        clock.now += 299
        assert cache.get("deployment:1") == "result"

        clock.now += 1
        assert cache.get("deployment:1") is None
        assert len(cache) == 0

    def test_set_after_eviction_is_dropped(self):
        """Test a result computed before an eviction is not stored"""
        cache = PendingUpdatesCache(ttl_seconds=300)
        generation = cache.generation

        cache.evict("deployment:1")

        assert cache.set("deployment:1", "stale", generation) is False
        assert cache.get("deployment:1") is None

    def test_clear(self):
        cache = PendingUpdatesCache(ttl_seconds=300)
        cache.set("deployment:1", "a")
        cache.set("deployment:2", "b")

        cache.clear()

        assert len(cache) == 0


class TestCacheInvalidator:
    """Test event driven invalidation"""

    def test_release_clears_everything(self):
        cache = PendingUpdatesCache(ttl_seconds=300)
        bus = EventBus()
        CacheInvalidator(cache).register(bus)
        cache.set("deployment:1", "a")
        cache.set("deployment:2", "b")

        bus.publish(VersionReleased(product_id="PROD-SRV", version_id=uuid.uuid4(), version_number="2.0.0"))

        assert len(cache) == 0

    def test_deployment_change_evicts_one_entry(self):
        cache = PendingUpdatesCache(ttl_seconds=300)
        bus = EventBus()
        CacheInvalidator(cache).register(bus)
        changed, untouched = uuid.uuid4(), uuid.uuid4()
        cache.set(cache_key(changed), "a")
        cache.set(cache_key(untouched), "b")

        bus.publish(DeploymentChanged(
            deployment_id=changed, tenant_id=uuid.uuid4(), product_id="PROD-SRV", change="updated"
        ))

        assert cache.get(cache_key(changed)) is None
        assert cache.get(cache_key(untouched)) == "b"

    def test_register_is_idempotent(self):
        bus = EventBus()
        invalidator = CacheInvalidator(PendingUpdatesCache(ttl_seconds=300))

        invalidator.register(bus)
        invalidator.register(bus)

        assert len(bus._subscribers[VersionReleased.__name__]) == 1
        assert len(bus._subscribers[DeploymentChanged.__name__]) == 1

    def test_unregister_stops_invalidation(self):
        cache = PendingUpdatesCache(ttl_seconds=300)
        bus = EventBus()
        invalidator = CacheInvalidator(cache)
        invalidator.register(bus)
        invalidator.unregister(bus)
        cache.set("deployment:1", "a")

        bus.publish(VersionReleased(product_id="PROD-SRV", version_id=uuid.uuid4(), version_number="2.0.0"))

        assert cache.get("deployment:1") == "a"
