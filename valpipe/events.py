"""
valpipe Lifecycle Events

Event types emitted by a ValidationPipeline, and the instance-scoped
dispatcher that delivers them to observers (metrics, telemetry, logging).

INVARIANT: a failing listener never prevents delivery to the others.
Every handler call is isolated; failures are logged and counted.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union
import logging
import uuid


logger = logging.getLogger(__name__)


# =============================================================================
# EVENT TYPES
# =============================================================================

class PipelineEventType(str, Enum):
    """Types of pipeline lifecycle events."""

    # Validation lifecycle
    VALIDATION_STARTED = "validation:started"
    VALIDATION_COMPLETED = "validation:completed"
    VALIDATION_ERROR = "validation:error"

    # Execution
    VALIDATOR_EXECUTED = "validator:executed"
    RULE_EXECUTED = "rule:executed"

    # Cache
    CACHE_HIT = "cache:hit"
    CACHE_MISS = "cache:miss"

    # Monitoring
    PERFORMANCE_THRESHOLD = "performance:threshold"

    # Registry
    VALIDATOR_REGISTERED = "validator:registered"
    VALIDATOR_UNREGISTERED = "validator:unregistered"
    RULE_REGISTERED = "rule:registered"
    RULE_UNREGISTERED = "rule:unregistered"


EventTypeLike = Union[PipelineEventType, str]


@dataclass
class PipelineEvent:
    """
    A single emitted event.

    `payload` carries the event-specific fields, e.g. {"rule", "result"}
    for rule:executed or {"key"} for cache:hit.
    """
    event_type: PipelineEventType
    payload: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __getitem__(self, key: str) -> Any:
        return self.payload[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "payload": {
                k: v.to_dict() if hasattr(v, "to_dict") else v
                for k, v in self.payload.items()
            },
        }


EventHandler = Callable[[PipelineEvent], Any]


# =============================================================================
# DISPATCHER
# =============================================================================

class EventDispatcher:
    """
    Listener registry owned by one pipeline.

    Usage:
        dispatcher = EventDispatcher()
        dispatcher.subscribe(PipelineEventType.RULE_EXECUTED, handler)
        dispatcher.subscribe_all(telemetry_handler)
        dispatcher.emit(PipelineEventType.CACHE_HIT, key="...")
    """

    def __init__(self, max_history: int = 100):
        self._max_history = max_history
        self._handlers: Dict[PipelineEventType, List[EventHandler]] = {}
        self._wildcard_handlers: List[EventHandler] = []
        self._history: List[PipelineEvent] = []
        self._paused = False
        self._failure_count = 0

    @staticmethod
    def _coerce(event_type: EventTypeLike) -> PipelineEventType:
        return event_type if isinstance(event_type, PipelineEventType) else PipelineEventType(event_type)

    def subscribe(self, event_type: EventTypeLike, handler: EventHandler) -> bool:
        """Subscribe to one event type. Returns False if already subscribed."""
        event_type = self._coerce(event_type)
        handlers = self._handlers.setdefault(event_type, [])
        if handler in handlers:
            return False
        handlers.append(handler)
        logger.debug(f"Subscribed handler to {event_type.value}")
        return True

    def subscribe_all(self, handler: EventHandler) -> bool:
        """Subscribe to every event type."""
        if handler in self._wildcard_handlers:
            return False
        self._wildcard_handlers.append(handler)
        return True

    def unsubscribe(self, event_type: EventTypeLike, handler: EventHandler) -> bool:
        handlers = self._handlers.get(self._coerce(event_type), [])
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    def unsubscribe_all(self, handler: EventHandler) -> bool:
        try:
            self._wildcard_handlers.remove(handler)
            return True
        except ValueError:
            return False

    def emit(self, event_type: EventTypeLike, **payload: Any) -> Optional[PipelineEvent]:
        """Build and deliver an event; returns it (None while paused)."""
        event_type = self._coerce(event_type)
        if self._paused:
            logger.debug(f"Dispatcher paused, dropping: {event_type.value}")
            return None

        event = PipelineEvent(event_type=event_type, payload=payload)
        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        # Snapshot so handlers may (un)subscribe during delivery
        for handler in list(self._handlers.get(event_type, [])):
            self._deliver(handler, event)
        for handler in list(self._wildcard_handlers):
            self._deliver(handler, event)

        return event

    def _deliver(self, handler: EventHandler, event: PipelineEvent) -> None:
        try:
            handler(event)
        except Exception as e:
            self._failure_count += 1
            logger.error(f"Handler failed for {event.event_type.value}: {e}")

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    @property
    def is_paused(self) -> bool:
        return self._paused

    def clear_handlers(self, event_type: Optional[EventTypeLike] = None) -> None:
        if event_type is not None:
            self._handlers.pop(self._coerce(event_type), None)
        else:
            self._handlers.clear()
            self._wildcard_handlers.clear()

    def get_history(
        self,
        limit: int = 20,
        event_type: Optional[EventTypeLike] = None,
    ) -> List[PipelineEvent]:
        history = self._history
        if event_type is not None:
            wanted = self._coerce(event_type)
            history = [e for e in history if e.event_type == wanted]
        return history[-limit:]

    def clear_history(self) -> None:
        self._history.clear()

    @property
    def handler_count(self) -> int:
        return sum(len(h) for h in self._handlers.values()) + len(self._wildcard_handlers)

    @property
    def failure_count(self) -> int:
        """Number of listener invocations that raised."""
        return self._failure_count
