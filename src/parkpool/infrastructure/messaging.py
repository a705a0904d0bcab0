# File: src/parkpool/infrastructure/messaging.py
"""
Messaging Infrastructure for the Parking Spot Allocation Engine

In-process publish/subscribe for domain events raised by ParkingLot:
1. Event Bus - Routes events to the handlers subscribed to their type
2. Event Handlers - Side effects driven by events
3. In-memory Event Store - Keeps published events for audit and replay

Events are published after the lot lock has been released, so handlers
never run inside an allocation critical section. A failing handler is
logged and skipped; it never breaks parking or exit.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, List
from decimal import Decimal
import logging
import threading

from ..domain.models import DomainEvent, EventType, VehicleLeftEvent, Money


# ============================================================================
# EVENT HANDLERS
# ============================================================================

class EventHandler(ABC):
    """Abstract base class for event handlers"""

    @abstractmethod
    def handle(self, event: DomainEvent) -> None:
        """Handle a domain event"""
        pass

    def can_handle(self, event: DomainEvent) -> bool:
        """Check if this handler can handle the event"""
        return True


class InMemoryEventStore(EventHandler):
    """Keeps every event it receives, in arrival order"""

    def __init__(self):
        self._events: List[DomainEvent] = []
        self._lock = threading.Lock()

    def handle(self, event: DomainEvent) -> None:
        with self._lock:
            self._events.append(event)

    def get_events(self, event_type: Optional[EventType] = None) -> List[DomainEvent]:
        with self._lock:
            if event_type is None:
                return list(self._events)
            return [event for event in self._events if event.event_type == event_type]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


class RevenueTracker(EventHandler):
    """Sums the fees of finished parking sessions"""

    def __init__(self, currency: str = "USD"):
        self._total = Money(Decimal('0.00'), currency)
        self._sessions = 0
        self._lock = threading.Lock()

    def can_handle(self, event: DomainEvent) -> bool:
        return isinstance(event, VehicleLeftEvent)

    def handle(self, event: DomainEvent) -> None:
        with self._lock:
            self._total = self._total + Money(event.fee_amount, self._total.currency)
            self._sessions += 1

    @property
    def total_revenue(self) -> Money:
        with self._lock:
            return self._total

    @property
    def completed_sessions(self) -> int:
        with self._lock:
            return self._sessions


# ============================================================================
# EVENT BUS (In-memory)
# ============================================================================

class EventBus:
    """
    In-memory event bus for intra-process event publishing

    Implements publish/subscribe pattern within the same process.
    Handlers are called synchronously on the publishing thread.
    """

    def __init__(self):
        self._subscribers: Dict[EventType, List[EventHandler]] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(self.__class__.__name__)

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to events of a specific type"""
        with self._lock:
            handlers = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)
        self._logger.debug(f"Subscribed {handler.__class__.__name__} to {event_type.value}")

    def subscribe_all(self, handler: EventHandler) -> None:
        for event_type in EventType:
            self.subscribe(event_type, handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe handler from events"""
        with self._lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                self._logger.debug(f"Unsubscribed {handler.__class__.__name__} from {event_type.value}")

    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers"""
        self._logger.debug(f"Publishing event: {event.event_type.value} (ID: {event.event_id})")

        with self._lock:
            handlers = list(self._subscribers.get(event.event_type, []))

        for handler in handlers:
            if not handler.can_handle(event):
                continue
            try:
                handler.handle(event)
            except Exception as e:
                self._logger.error(
                    f"Error handling event {event.event_type.value} with {handler.__class__.__name__}: {e}",
                    exc_info=True
                )

    def publish_all(self, events: List[DomainEvent]) -> None:
        for event in events:
            self.publish(event)
