"""
Engine Exception Classes

This module defines the exceptions raised by the assessment session engine.
"""

from typing import Optional, Any


class BaseError(Exception):
    """Base class for all engine exceptions."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            original_exception: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class MalformedQuestion(BaseError):
    """Raised when persisted question content violates the question schema."""

    def __init__(self, question_id: Any, reason: str):
        """
        Initialize the malformed question error.

        Args:
            question_id: ID of the offending question (may be None)
            reason: What is wrong with it
        """
        super().__init__(f"Malformed question {question_id}: {reason}")
        self.question_id = question_id
        self.reason = reason


class PersistenceUnavailable(BaseError):
    """Raised when a read or write against the persistence collaborator fails."""

    def __init__(self, operation: str, original_exception: Optional[Exception] = None):
        """
        Initialize the persistence error.

        Args:
            operation: Name of the collaborator operation that failed
            original_exception: Underlying driver or network exception
        """
        detail = f": {original_exception}" if original_exception else ""
        super().__init__(f"Persistence unavailable during {operation}{detail}", original_exception)
        self.operation = operation


class NotFoundError(BaseError):
    """Raised when a test or session does not exist."""

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(f"{resource_type} with ID {resource_id} not found")
        self.resource_type = resource_type
        self.resource_id = resource_id


class NavigationError(BaseError):
    """Base class for illegal use of the navigation state machine."""


class InvalidTransition(NavigationError):
    """Raised when an operation is not legal in the current phase."""

    def __init__(self, operation: str, phase: Any):
        super().__init__(f"Cannot {operation} while {getattr(phase, 'value', phase)}")
        self.operation = operation
        self.phase = phase


class IncompleteResponse(NavigationError):
    """Raised when advance() is attempted before the current question is complete."""

    def __init__(self, question_id: str):
        super().__init__(f"Question {question_id} has no complete response")
        self.question_id = question_id


class InvalidAnswer(BaseError):
    """Raised when an answer has a shape the question type can never accept."""

    def __init__(self, question_id: str, reason: str):
        super().__init__(f"Invalid answer for question {question_id}: {reason}")
        self.question_id = question_id
        self.reason = reason


class ReadOnlyResponseStore(BaseError):
    """Raised when a frozen (review) response store is written to."""

    def __init__(self, question_id: str):
        super().__init__(f"Response store is read-only; cannot set {question_id}")
        self.question_id = question_id


class ReviewUnavailable(BaseError):
    """Raised when a session cannot be reconstructed for review."""

    def __init__(self, session_id: Any, reason: str):
        super().__init__(f"Session {session_id} cannot be reviewed: {reason}")
        self.session_id = session_id
        self.reason = reason
