"""
Memory Assessment Repository Module

This module provides an in-memory implementation of the AssessmentRepository
interface for development and testing purposes.
"""

import copy
import datetime
import itertools
import uuid
from typing import Any, Dict, List, Optional

from eiprep.assessments.repository import AssessmentRepository
from eiprep.common.logger import app_logger

logger = app_logger.getChild("assessments.memory_repository")


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class MemoryAssessmentRepository(AssessmentRepository):
    """
    In-memory implementation of the AssessmentRepository.

    Content is loaded through the ``seed_*`` helpers. Every read returns
    copies so callers can never mutate the stored rows.
    """

    def __init__(self):
        self._tests: Dict[str, Dict[str, Any]] = {}
        self._sections: Dict[str, List[Dict[str, Any]]] = {}
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._responses: List[Dict[str, Any]] = []
        self._response_ids = itertools.count(1)

    def seed_test(self, test: Dict[str, Any], sections: Optional[List[Dict[str, Any]]] = None) -> None:
        """
        Store a test and its nested section rows.

        Args:
            test: Practice test row
            sections: Section rows with nested questions, options and answer_keys
        """
        self._tests[test["id"]] = copy.deepcopy(test)
        self._sections[test["id"]] = copy.deepcopy(sections or [])

    def seed_session(self, row: Dict[str, Any]) -> None:
        """Store a session row as-is, e.g. a completed legacy session."""
        self._sessions[row["id"]] = copy.deepcopy(row)

    async def get_test(self, test_id: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._tests.get(test_id))

    async def list_sections(self, test_id: str) -> List[Dict[str, Any]]:
        sections = self._sections.get(test_id, [])
        return copy.deepcopy(sorted(sections, key=lambda row: row.get("order_index") or 0))

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._sessions.get(session_id))

    async def list_responses(self, session_id: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(row) for row in self._responses if row["session_id"] == session_id]

    async def list_sessions(self, user_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = [
            dict(copy.deepcopy(row), test=copy.deepcopy(self._tests.get(row["test_id"])))
            for row in self._sessions.values()
            if row["user_id"] == user_id and (status is None or row.get("status") == status)
        ]
        epoch = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)
        return sorted(rows, key=lambda row: row.get("completed_at") or epoch, reverse=True)

    async def insert_session(self, row: Dict[str, Any]) -> Dict[str, Any]:
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("started_at", _utcnow())
        self._sessions[stored["id"]] = stored
        logger.debug(f"Inserted session {stored['id']}")
        return copy.deepcopy(stored)

    async def insert_responses(self, rows: List[Dict[str, Any]]) -> int:
        for row in rows:
            stored = copy.deepcopy(row)
            stored["id"] = next(self._response_ids)
            stored.setdefault("created_at", _utcnow())
            self._responses.append(stored)
        return len(rows)

    async def update_session(self, session_id: str, changes: Dict[str, Any]) -> bool:
        if session_id not in self._sessions:
            return False
        self._sessions[session_id].update(copy.deepcopy(changes))
        return True

    def clear(self) -> None:
        """
        Clear all stored data.

        This method is specific to the memory implementation and not part of
        the AssessmentRepository interface.
        """
        self._tests.clear()
        self._sections.clear()
        self._sessions.clear()
        self._responses.clear()
