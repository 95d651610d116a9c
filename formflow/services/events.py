"""Session-changed notifications.

Views that depend on who is logged in subscribe here instead of polling the
session store. Every state transition of the session component is published.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from formflow.models.enums import UserRole

logger = logging.getLogger(__name__)


class SessionEventType(StrEnum):
    """Session state transitions."""

    LOGGED_IN = "logged_in"
    LOGGED_OUT = "logged_out"
    REVOKED = "revoked"


@dataclass(frozen=True)
class SessionEvent:
    type: SessionEventType
    user_id: str
    role: UserRole
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


SessionListener = Callable[[SessionEvent], None]


class SessionEvents:
    """In-process publish/subscribe channel for session transitions."""

    def __init__(self) -> None:
        self._listeners: list[SessionListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event_type: SessionEventType, user_id: str, role: UserRole) -> SessionEvent:
        """Deliver an event to every listener.

        Args:
            event_type: The transition that happened
            user_id: Principal whose session changed
            role: Role of that principal
        """
        event = SessionEvent(type=event_type, user_id=user_id, role=role)
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                # Don't fail the transition if a subscriber fails
                logger.error(f"Session listener failed for {event_type}: {e}")

        logger.debug(f"Published {event_type} for {user_id}")
        return event
