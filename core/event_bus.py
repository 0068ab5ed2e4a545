"""
Event Bus System for the favorites app
"""

import logging
import itertools
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List, Callable, Union
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger('favorites.core.event_bus')

_event_counter = itertools.count(1)

class EventPriority(Enum):
    """Event handler priority levels"""
    CRITICAL = 0    # System-critical events (errors, cleanup)
    HIGH = 10       # Important business logic
    NORMAL = 50     # Standard application events (presentation refresh)
    LOW = 100       # Non-critical events (logging, metrics)

@dataclass
class Event:
    """
    Base event class with metadata and routing information.

    Handlers receive the event object itself and read the payload
    from ``data``.
    """

    event_type: str
    event_id: int = field(default_factory=lambda: next(_event_counter))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    # Whether to continue propagation after handling
    propagate: bool = True

    def get_event_data(self, key: str, default: Any = None) -> Any:
        """Get event data with fallback"""
        return self.data.get(key, default)

    def stop_propagation(self):
        """Stop event propagation to remaining handlers"""
        self.propagate = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization"""
        return {
            'event_type': self.event_type,
            'event_id': self.event_id,
            'timestamp': self.timestamp.isoformat(),
            'source': self.source,
            'data': self.data,
            'propagate': self.propagate
        }

@dataclass
class EventHandler:
    """Event handler registration information"""

    handler_id: str
    handler_func: Callable[[Event], Any]
    event_types: List[str]
    priority: EventPriority = EventPriority.NORMAL
    filter_func: Optional[Callable[[Event], bool]] = None

    def can_handle(self, event: Event) -> bool:
        """Check if this handler can handle the given event"""
        if event.event_type not in self.event_types and '*' not in self.event_types:
            return False

        if self.filter_func and not self.filter_func(event):
            return False

        return True

class Subscription:
    """
    Handle returned by ``EventBus.subscribe``.

    Disposing the handle (explicitly, or by leaving a ``with`` block)
    removes the handler from the bus. Disposing twice is harmless.
    """

    def __init__(self, bus: 'EventBus', handler_id: str):
        self._bus = bus
        self.handler_id = handler_id
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def dispose(self) -> bool:
        """Unsubscribe the handler. Returns True if it was still registered."""
        if not self._active:
            return False
        self._active = False
        return self._bus.unsubscribe(self.handler_id)

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()

    def __repr__(self) -> str:
        state = "active" if self._active else "disposed"
        return f"<Subscription {self.handler_id} ({state})>"

class EventBus:
    """
    Synchronous publish/subscribe bus.

    ``publish`` calls every matching handler in priority order before it
    returns. Handler errors are isolated: they are logged, counted and
    passed to the registered error handlers, and delivery continues.
    """

    def __init__(self, max_history: int = 100):
        self._handlers: Dict[str, EventHandler] = {}
        self._event_history: List[Event] = []
        self._max_history = max_history
        self._error_handlers: List[Callable] = []
        self._middleware: List[Callable] = []
        self._stats = {
            'events_published': 0,
            'events_handled': 0,
            'handler_errors': 0
        }

        logger.debug("EventBus initialized")

    def subscribe(
        self,
        event_types: Union[str, List[str]],
        handler: Callable[[Event], Any],
        handler_id: Optional[str] = None,
        priority: EventPriority = EventPriority.NORMAL,
        filter_func: Optional[Callable[[Event], bool]] = None
    ) -> Subscription:
        """
        Subscribe to events with a handler function.

        Args:
            event_types: Event type(s) to subscribe to ('*' for all)
            handler: Callable receiving the Event
            handler_id: Unique handler ID (auto-generated if None)
            priority: Handler priority level
            filter_func: Optional filter function

        Returns:
            Subscription handle; dispose it to unsubscribe
        """
        if isinstance(event_types, str):
            event_types = [event_types]

        if handler_id is None:
            name = getattr(handler, '__name__', type(handler).__name__)
            handler_id = f"{name}_{id(handler)}_{next(_event_counter)}"

        self._handlers[handler_id] = EventHandler(
            handler_id=handler_id,
            handler_func=handler,
            event_types=list(event_types),
            priority=priority,
            filter_func=filter_func
        )

        logger.debug(f"Subscribed handler {handler_id} to events: {event_types}")
        return Subscription(self, handler_id)

    def unsubscribe(self, handler_id: str) -> bool:
        """
        Unsubscribe a handler by ID.

        Returns:
            True if handler was found and removed
        """
        if handler_id in self._handlers:
            del self._handlers[handler_id]
            logger.debug(f"Unsubscribed handler {handler_id}")
            return True
        return False

    def publish(self, event: Event) -> int:
        """
        Publish an event to all applicable handlers.

        Args:
            event: Event to publish

        Returns:
            Number of handlers that processed the event
        """
        self._stats['events_published'] += 1
        self._add_to_history(event)

        for middleware in self._middleware:
            try:
                event = middleware(event)
                if event is None:
                    logger.debug("Event stopped by middleware")
                    return 0
            except Exception as e:
                logger.error(f"Error in middleware: {e}")

        # Snapshot so handlers may unsubscribe while we iterate
        applicable_handlers = [h for h in list(self._handlers.values()) if h.can_handle(event)]
        applicable_handlers.sort(key=lambda h: h.priority.value)

        handled_count = 0

        for handler in applicable_handlers:
            if not event.propagate:
                break

            try:
                handler.handler_func(event)
                handled_count += 1
                self._stats['events_handled'] += 1

            except Exception as e:
                self._stats['handler_errors'] += 1
                logger.error(f"Error in handler {handler.handler_id}: {e}")
                self._handle_error(handler, event, e)

        logger.debug(f"Published event {event.event_type} to {handled_count} handlers")
        return handled_count

    def emit(self, event_type: str, source: Optional[str] = None, **data) -> int:
        """Convenience method to create and publish an event."""
        return self.publish(Event(event_type=event_type, source=source, data=data))

    def add_middleware(self, middleware: Callable[[Event], Optional[Event]]):
        """Add middleware that can modify or drop events before handling."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {getattr(middleware, '__name__', middleware)}")

    def add_error_handler(self, error_handler: Callable[[EventHandler, Event, Exception], Any]):
        """Add error handler for handler exceptions."""
        self._error_handlers.append(error_handler)

    def get_stats(self) -> Dict[str, Any]:
        """Get event bus statistics"""
        return {
            **self._stats,
            'active_handlers': len(self._handlers),
            'history_size': len(self._event_history)
        }

    def get_handlers(self) -> List[str]:
        """Get list of registered handler IDs"""
        return list(self._handlers.keys())

    def get_event_history(self, limit: Optional[int] = None) -> List[Event]:
        """Get recent event history, newest last."""
        if limit:
            return self._event_history[-limit:]
        return self._event_history.copy()

    def clear_history(self):
        self._event_history.clear()

    def _handle_error(self, handler: EventHandler, event: Event, error: Exception):
        """Handle errors from event handlers"""
        for error_handler in self._error_handlers:
            try:
                error_handler(handler, event, error)
            except Exception as e:
                logger.error(f"Error in error handler: {e}")

    def _add_to_history(self, event: Event):
        """Add event to history with size management"""
        self._event_history.append(event)

        if len(self._event_history) > self._max_history:
            self._event_history = self._event_history[-self._max_history:]
