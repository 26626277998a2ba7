"""
Cache invalidation for pending updates

A release can change the candidate set of every deployment, so it clears
the whole cache. A deployment mutation only affects its own entry.
"""

from typing import Optional

import structlog

from update_manager.core.events import DeploymentChanged, EventBus, VersionReleased
from update_manager.services.pending_updates import (
    PendingUpdatesCache, cache_key, pending_updates_cache
)

logger = structlog.get_logger(__name__)


class CacheInvalidator:

    def __init__(self, cache: Optional[PendingUpdatesCache] = None):
        self.cache = cache if cache is not None else pending_updates_cache

    def on_version_released(self, event: VersionReleased):
        self.cache.clear()
        logger.info(
            f"Cleared pending updates cache after release of "
            f"{event.product_id} {event.version_number}"
        )

    def on_deployment_changed(self, event: DeploymentChanged):
        self.cache.evict(cache_key(event.deployment_id))
        logger.debug(f"Evicted pending updates of deployment {event.deployment_id}")

    def register(self, bus: EventBus):
        """Subscribe to the bus, once"""
        if not bus.is_subscribed(VersionReleased.__name__, self.on_version_released):
            bus.subscribe(VersionReleased.__name__, self.on_version_released)
        if not bus.is_subscribed(DeploymentChanged.__name__, self.on_deployment_changed):
            bus.subscribe(DeploymentChanged.__name__, self.on_deployment_changed)

    def unregister(self, bus: EventBus):
        bus.unsubscribe(VersionReleased.__name__, self.on_version_released)
        bus.unsubscribe(DeploymentChanged.__name__, self.on_deployment_changed)


# Wired to the global bus by the application
cache_invalidator = CacheInvalidator()
