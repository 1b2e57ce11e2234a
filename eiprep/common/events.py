"""
Engine Events

Domain events and a small synchronous dispatcher. The dispatcher is the
non-blocking notification channel through which swallowed persistence
failures, session completion and authoring warnings are surfaced.
"""

import time
import uuid
from typing import Any, Callable, Dict, List, Optional

__all__ = [
    'DomainEvent',
    'EventDispatcher',
    'PersistenceFailureEvent',
    'SessionCompletedEvent',
    'UnkeyedQuestionEvent',
]


class DomainEvent:
    """Base class for all domain events raised by the engine"""

    def __init__(self, event_id: str = None, timestamp: float = None):
        """Initialize a domain event with optional ID and timestamp"""
        self.event_id = event_id or str(uuid.uuid4())
        self.timestamp = timestamp or time.time()
        self.event_type = self.__class__.__name__


class EventDispatcher:
    """Event dispatcher for domain events"""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[DomainEvent], Any]]] = {}

    def subscribe(self, event_type, handler):
        """Subscribe a handler to an event type (class or class name)"""
        key = event_type if isinstance(event_type, str) else event_type.__name__
        self._subscribers.setdefault(key, []).append(handler)

    def dispatch(self, event):
        """Dispatch an event to all subscribers"""
        for handler in list(self._subscribers.get(event.__class__.__name__, [])):
            handler(event)

    def unsubscribe(self, event_type, handler):
        """Unsubscribe a handler from an event type"""
        key = event_type if isinstance(event_type, str) else event_type.__name__
        if handler in self._subscribers.get(key, []):
            self._subscribers[key].remove(handler)


class PersistenceFailureEvent(DomainEvent):
    """Raised when a detached write fails and is dropped"""

    def __init__(self, operation: str, description: str, error: Exception,
                 session_id: Optional[str] = None, event_id=None, timestamp=None):
        super().__init__(event_id, timestamp)
        self.operation = operation
        self.description = description
        self.error = error
        self.session_id = session_id


class SessionCompletedEvent(DomainEvent):
    """Raised when a live session is scored"""

    def __init__(self, session_id, user_id, test_id, percentage, earned_points,
                 possible_points, event_id=None, timestamp=None):
        super().__init__(event_id, timestamp)
        self.session_id = session_id
        self.user_id = user_id
        self.test_id = test_id
        self.percentage = percentage
        self.earned_points = earned_points
        self.possible_points = possible_points


class UnkeyedQuestionEvent(DomainEvent):
    """Raised for the authoring side when a loaded question has no answer key"""

    def __init__(self, test_id, question_id, event_id=None, timestamp=None):
        super().__init__(event_id, timestamp)
        self.test_id = test_id
        self.question_id = question_id
