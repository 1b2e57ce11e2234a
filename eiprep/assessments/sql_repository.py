"""
SQLAlchemy Assessment Repository

AssessmentRepository backed by an async SQLAlchemy session factory. Every
SQLAlchemyError is logged and re-raised as PersistenceUnavailable, so callers
only ever deal with the engine's own error taxonomy.
"""

import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from eiprep.assessments.repository import AssessmentRepository
from eiprep.common.exceptions import PersistenceUnavailable
from eiprep.common.logger import app_logger
from eiprep.database.models import (
    AnswerKeyModel,
    PracticeTestModel,
    QuestionModel,
    QuestionOptionModel,
    SectionModel,
    UserResponseModel,
    UserTestSessionModel,
)

logger = app_logger.getChild("assessments.sql_repository")


class SQLAlchemyAssessmentRepository(AssessmentRepository):
    """
    SQLAlchemy implementation of the AssessmentRepository.

    Each call opens its own session from the factory, so one repository can
    be shared by the engine and its detached write queue.
    """

    def __init__(self, session_factory: sessionmaker):
        """
        Initialize the repository.

        Args:
            session_factory: Factory producing AsyncSession objects
        """
        self.session_factory = session_factory

    def _fail(self, operation: str, error: SQLAlchemyError) -> PersistenceUnavailable:
        logger.error(f"Database error during {operation}: {error}")
        return PersistenceUnavailable(operation, error)

    async def get_test(self, test_id: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.session_factory() as session:
                test = await session.get(PracticeTestModel, test_id)
                return test.to_dict() if test else None
        except SQLAlchemyError as e:
            raise self._fail("get_test", e)

    async def list_sections(self, test_id: str) -> List[Dict[str, Any]]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(SectionModel)
                    .where(SectionModel.test_id == test_id)
                    .order_by(SectionModel.order_index)
                )
                sections = [row.to_dict() for row in result.scalars().all()]
                if not sections:
                    return []

                result = await session.execute(
                    select(QuestionModel)
                    .where(QuestionModel.section_id.in_([s["id"] for s in sections]))
                    .order_by(QuestionModel.order_index)
                )
                questions = [row.to_dict() for row in result.scalars().all()]
                question_ids = [q["id"] for q in questions]

                options = defaultdict(list)
                keys = defaultdict(list)
                if question_ids:
                    result = await session.execute(
                        select(QuestionOptionModel)
                        .where(QuestionOptionModel.question_id.in_(question_ids))
                        .order_by(QuestionOptionModel.order_index)
                    )
                    for row in result.scalars().all():
                        options[row.question_id].append(row.to_dict())

                    result = await session.execute(
                        select(AnswerKeyModel)
                        .where(AnswerKeyModel.question_id.in_(question_ids))
                        .order_by(AnswerKeyModel.id)
                    )
                    for row in result.scalars().all():
                        keys[row.question_id].append(row.to_dict())
        except SQLAlchemyError as e:
            raise self._fail("list_sections", e)

        by_section = defaultdict(list)
        for question in questions:
            question["options"] = options[question["id"]]
            question["answer_keys"] = keys[question["id"]]
            by_section[question["section_id"]].append(question)
        for section in sections:
            section["questions"] = by_section[section["id"]]
        return sections

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.session_factory() as session:
                row = await session.get(UserTestSessionModel, session_id)
                return row.to_dict() if row else None
        except SQLAlchemyError as e:
            raise self._fail("get_session", e)

    async def list_responses(self, session_id: str) -> List[Dict[str, Any]]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(UserResponseModel)
                    .where(UserResponseModel.session_id == session_id)
                    .order_by(UserResponseModel.id)
                )
                return [row.to_dict() for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise self._fail("list_responses", e)

    async def list_sessions(self, user_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        try:
            async with self.session_factory() as session:
                query = select(UserTestSessionModel).where(UserTestSessionModel.user_id == user_id)
                if status is not None:
                    query = query.where(UserTestSessionModel.status == status)
                result = await session.execute(query.order_by(UserTestSessionModel.completed_at.desc()))
                sessions = [row.to_dict() for row in result.scalars().all()]

                test_ids = list({row["test_id"] for row in sessions})
                tests = {}
                if test_ids:
                    result = await session.execute(
                        select(PracticeTestModel).where(PracticeTestModel.id.in_(test_ids))
                    )
                    tests = {row.id: row.to_dict() for row in result.scalars().all()}
        except SQLAlchemyError as e:
            raise self._fail("list_sessions", e)

        for row in sessions:
            row["test"] = tests.get(row["test_id"])
        return sessions

    async def insert_session(self, row: Dict[str, Any]) -> Dict[str, Any]:
        data = dict(row)
        data.setdefault("id", str(uuid.uuid4()))
        try:
            async with self.session_factory() as session:
                model = UserTestSessionModel.from_dict(data)
                session.add(model)
                await session.commit()
                return model.to_dict()
        except SQLAlchemyError as e:
            raise self._fail("insert_session", e)

    async def insert_responses(self, rows: List[Dict[str, Any]]) -> int:
        try:
            async with self.session_factory() as session:
                session.add_all([UserResponseModel.from_dict(row) for row in rows])
                await session.commit()
        except SQLAlchemyError as e:
            raise self._fail("insert_responses", e)
        return len(rows)

    async def update_session(self, session_id: str, changes: Dict[str, Any]) -> bool:
        try:
            async with self.session_factory() as session:
                model = await session.get(UserTestSessionModel, session_id)
                if model is None:
                    return False
                model.update(changes)
                await session.commit()
                return True
        except SQLAlchemyError as e:
            raise self._fail("update_session", e)
