"""
Common Components for the assessment engine

Shared infrastructure used by every engine component:
1. Logging - Application logger and context adapter
2. Error Handling - Engine exception hierarchy
3. Events - Dispatcher for non-blocking notifications
4. Write Queue - Detached persistence writes
"""

from eiprep.common.logger import app_logger
from eiprep.common.events import (
    DomainEvent, EventDispatcher, PersistenceFailureEvent,
    SessionCompletedEvent, UnkeyedQuestionEvent
)
from eiprep.common.exceptions import (
    BaseError, MalformedQuestion, PersistenceUnavailable, NotFoundError,
    NavigationError, InvalidTransition, IncompleteResponse, InvalidAnswer,
    ReadOnlyResponseStore, ReviewUnavailable
)
from eiprep.common.write_queue import AsyncWriteQueue, WriteJob

__all__ = [
    # Logging
    'app_logger',

    # Events
    'DomainEvent', 'EventDispatcher', 'PersistenceFailureEvent',
    'SessionCompletedEvent', 'UnkeyedQuestionEvent',

    # Errors
    'BaseError', 'MalformedQuestion', 'PersistenceUnavailable', 'NotFoundError',
    'NavigationError', 'InvalidTransition', 'IncompleteResponse', 'InvalidAnswer',
    'ReadOnlyResponseStore', 'ReviewUnavailable',

    # Writes
    'AsyncWriteQueue', 'WriteJob',
]
