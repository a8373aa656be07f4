"""Session lifecycle events for host observers.

The bus is a side channel: the coordination logic emits into it and never
reads from it. Delivery is synchronous and in-process, in subscription
order. Every event carries a sequence id that increases monotonically for
the lifetime of the bus.
"""

import itertools
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()


class SessionEventType(str, Enum):
    """Event vocabulary of the signaling server."""

    SESSION_STARTED = "session.started"
    SESSION_COMPROMISED = "session.compromised"
    LEADER_CONNECTED = "leader.connected"
    FOLLOWER_CONNECTED = "follower.connected"
    FOLLOWER_DISCONNECTED = "follower.disconnected"
    LEADER_DISCONNECTED = "leader.disconnected"
    LEADER_ACTION = "leader.action"


class SessionEvent(BaseModel):
    """A single emitted lifecycle event."""

    sequence_id: int = Field(..., description="Monotonically increasing per bus")
    type: SessionEventType = Field(..., description="Type of event")
    data: Any = Field(None, description="Event payload")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the event was emitted",
    )

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


EventHandler = Callable[[SessionEvent], None]


class SessionEventBus:
    """Subscribe/unsubscribe interface injected into the session state machine."""

    def __init__(self):
        self._sequence = itertools.count()
        self._subscriptions: list[tuple[Optional[SessionEventType], EventHandler]] = []

    def subscribe(
        self,
        handler: EventHandler,
        event_type: Optional[SessionEventType] = None,
    ) -> Callable[[], None]:
        """Register a handler for one event type, or for all of them.

        Args:
            handler: Function called with each matching event.
            event_type: Type to listen to (None for every type).

        Returns:
            A function that removes this subscription.
        """
        self._subscriptions.append((event_type, handler))

        def unsubscribe() -> None:
            self.unsubscribe(handler, event_type)

        return unsubscribe

    def unsubscribe(
        self,
        handler: EventHandler,
        event_type: Optional[SessionEventType] = None,
    ) -> None:
        subscription = (event_type, handler)
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def emit(
        self,
        event_type: SessionEventType,
        data: Any = None,
        created_at: Optional[datetime] = None,
    ) -> SessionEvent:
        """Build the next event and deliver it to matching subscribers."""
        event = SessionEvent(
            sequence_id=next(self._sequence),
            type=event_type,
            data=data,
            created_at=created_at or datetime.now(UTC),
        )

        for subscribed_type, handler in list(self._subscriptions):
            if subscribed_type is not None and subscribed_type != event_type:
                continue
            try:
                handler(event)
            except Exception as e:
                logger.warning(
                    "Session event handler failed",
                    event_type=event_type.value,
                    error=str(e),
                )

        return event
