"""
Domain events system

Domain events represent important business events that can be published
and subscribed to by multiple parts of the system.
"""

from typing import Any, Callable, Dict, List, Optional
import threading
import uuid
import structlog

from update_manager.core.timeutil import utc_now

logger = structlog.get_logger(__name__)


class DomainEvent:
    """Base class for domain events"""

    def __init__(self, event_id: uuid.UUID = None):
        self.event_id = event_id or uuid.uuid4()
        self.occurred_at = utc_now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        return {
            "event_id": str(self.event_id),
            "occurred_at": self.occurred_at.isoformat(),
            "event_type": self.__class__.__name__
        }


class VersionReleased(DomainEvent):
    """Event fired when a version moves to RELEASED"""

    def __init__(
        self,
        product_id: str,
        version_id: uuid.UUID,
        version_number: str,
        released_by: Optional[str] = None,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.product_id = product_id
        self.version_id = version_id
        self.version_number = version_number
        self.released_by = released_by

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "product_id": self.product_id,
            "version_id": str(self.version_id),
            "version_number": self.version_number,
            "released_by": self.released_by
        })
        return data


class DeploymentChanged(DomainEvent):
    """Event fired when a deployment is created, updated or deleted"""

    def __init__(
        self,
        deployment_id: uuid.UUID,
        tenant_id: uuid.UUID,
        product_id: str,
        change: str,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.deployment_id = deployment_id
        self.tenant_id = tenant_id
        self.product_id = product_id
        self.change = change

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "deployment_id": str(self.deployment_id),
            "tenant_id": str(self.tenant_id),
            "product_id": self.product_id,
            "change": self.change
        })
        return data


class LicenseAllocated(DomainEvent):
    """Event fired when seats are allocated from a license"""

    def __init__(
        self,
        license_id: uuid.UUID,
        allocation_id: uuid.UUID,
        tenant_id: uuid.UUID,
        seats_allocated: int,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.license_id = license_id
        self.allocation_id = allocation_id
        self.tenant_id = tenant_id
        self.seats_allocated = seats_allocated

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "license_id": str(self.license_id),
            "allocation_id": str(self.allocation_id),
            "tenant_id": str(self.tenant_id),
            "seats_allocated": self.seats_allocated
        })
        return data


class AllocationReleased(DomainEvent):
    """Event fired when an allocation gives its seats back"""

    def __init__(
        self,
        license_id: uuid.UUID,
        allocation_id: uuid.UUID,
        released_by: str,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.license_id = license_id
        self.allocation_id = allocation_id
        self.released_by = released_by

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "license_id": str(self.license_id),
            "allocation_id": str(self.allocation_id),
            "released_by": self.released_by
        })
        return data


class EventBus:
    """Simple in-memory event bus for publishing domain events"""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: Callable):
        """Subscribe to a specific event type"""
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to event type: {event_type}")

    def unsubscribe(self, event_type: str, handler: Callable):
        """Unsubscribe from an event type"""
        with self._lock:
            if handler in self._subscribers.get(event_type, []):
                self._subscribers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from event type: {event_type}")

    def is_subscribed(self, event_type: str, handler: Callable) -> bool:
        with self._lock:
            return handler in self._subscribers.get(event_type, [])

    def publish(self, event: DomainEvent):
        """Publish an event to all subscribers"""
        event_type = event.__class__.__name__
        with self._lock:
            handlers = list(self._subscribers.get(event_type, []))

        if not handlers:
            logger.debug(f"No subscribers for event type: {event_type}")
            return

        logger.info(f"Publishing event {event_type}: {event.event_id}")

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event_type}: {e}", exc_info=True)


# Global event bus instance
event_bus = EventBus()
