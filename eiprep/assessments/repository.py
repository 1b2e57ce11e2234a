"""
Assessment Repository Module

This module defines the interface of the persistence collaborator the engine
reads content from and writes sessions and responses to.

Rows are plain dicts keyed by the relational column names of the schema in
``eiprep.database.models``. Implementations raise PersistenceUnavailable for
any failure of the underlying store; a missing row is not a failure and is
reported as None.
"""

import abc
from typing import Any, Dict, List, Optional


class AssessmentRepository(abc.ABC):
    """
    Abstract base class for assessment persistence.

    Four reads load content and history; three writes record a session.
    """

    @abc.abstractmethod
    async def get_test(self, test_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a practice test row by its ID.

        Args:
            test_id: The ID of the test

        Returns:
            The test row if found, None otherwise
        """
        pass

    @abc.abstractmethod
    async def list_sections(self, test_id: str) -> List[Dict[str, Any]]:
        """
        List a test's sections with their content.

        Each section dict carries ``questions``; each question carries
        ``options`` and ``answer_keys``.

        Args:
            test_id: The ID of the test

        Returns:
            Section rows ordered by ``order_index`` (empty for a legacy test)
        """
        pass

    @abc.abstractmethod
    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a session row by its ID.

        Args:
            session_id: The ID of the session

        Returns:
            The session row if found, None otherwise
        """
        pass

    @abc.abstractmethod
    async def list_responses(self, session_id: str) -> List[Dict[str, Any]]:
        """
        List every response row of a session.

        Args:
            session_id: The ID of the session

        Returns:
            Response rows in insertion order, duplicates included
        """
        pass

    @abc.abstractmethod
    async def list_sessions(self, user_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        List a user's sessions, each joined with its test row under ``test``.

        Args:
            user_id: Owning user
            status: Optional status filter, e.g. ``"completed"``

        Returns:
            Session rows, newest ``completed_at`` first
        """
        pass

    @abc.abstractmethod
    async def insert_session(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new session.

        Args:
            row: Session columns; ``id`` is generated when absent

        Returns:
            The stored row
        """
        pass

    @abc.abstractmethod
    async def insert_responses(self, rows: List[Dict[str, Any]]) -> int:
        """
        Append response rows. Rows are never updated in place.

        Args:
            rows: Response rows for one question

        Returns:
            Number of rows inserted
        """
        pass

    @abc.abstractmethod
    async def update_session(self, session_id: str, changes: Dict[str, Any]) -> bool:
        """
        Update columns of an existing session.

        Args:
            session_id: The ID of the session
            changes: Column values to set

        Returns:
            True if the session existed, False otherwise
        """
        pass
