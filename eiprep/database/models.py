"""
SQLAlchemy ORM models for practice tests and user sessions.

Content tables (written by the authoring tool, read-only to the engine):
- PracticeTestModel: practice_tests
- SectionModel: test_sections
- QuestionModel: questions
- QuestionOptionModel: question_options
- AnswerKeyModel: answer_keys

Session tables (written by the engine):
- UserTestSessionModel: user_test_sessions
- UserResponseModel: user_responses, append-only
"""

import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text

from eiprep.database.base import ModelBase


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class PracticeTestModel(ModelBase):
    """A worksheet or exam."""
    __tablename__ = "practice_tests"

    id = Column(String(36), primary_key=True)
    type = Column(String(20), nullable=False, default="exam")
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    branch = Column(String(20), nullable=True)
    time_limit_minutes = Column(Integer, nullable=True)


class SectionModel(ModelBase):
    """An ordered group of questions within a test."""
    __tablename__ = "test_sections"

    id = Column(String(36), primary_key=True)
    test_id = Column(String(36), ForeignKey("practice_tests.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    instructions = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    branch = Column(String(20), nullable=True)


class QuestionModel(ModelBase):
    """A question; type-specific columns are null for the other types."""
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True)
    section_id = Column(String(36), ForeignKey("test_sections.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    question_text = Column(Text, nullable=False)
    scenario_context = Column(Text, nullable=True)
    scenario_image_url = Column(Text, nullable=True)
    video_url = Column(Text, nullable=True)
    explanation = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    correct_order = Column(JSON, nullable=True)
    scale_min = Column(Float, nullable=True)
    scale_max = Column(Float, nullable=True)
    branch = Column(String(20), nullable=True)


class QuestionOptionModel(ModelBase):
    """An option of a question, or a row of a matrix-rating question."""
    __tablename__ = "question_options"

    id = Column(String(36), primary_key=True)
    question_id = Column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(Text, nullable=False, default="")
    value = Column(String(255), nullable=True)
    order_index = Column(Integer, nullable=False, default=0)


class AnswerKeyModel(ModelBase):
    """One consensus point entry for a question."""
    __tablename__ = "answer_keys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    question_option_id = Column(String(36), ForeignKey("question_options.id", ondelete="CASCADE"), nullable=True)
    correct_answer = Column(String(255), nullable=True)
    points = Column(Float, nullable=False, default=0.0)


class UserTestSessionModel(ModelBase):
    """One user's attempt at one test."""
    __tablename__ = "user_test_sessions"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    test_id = Column(String(36), ForeignKey("practice_tests.id"), nullable=False)
    status = Column(String(20), nullable=False, default="in_progress")
    started_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    score = Column(Integer, nullable=True)
    earned_points = Column(Float, nullable=True)
    possible_points = Column(Float, nullable=True)
    reflection_score = Column(Integer, nullable=True)
    legacy_payload = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_user_test_sessions_user_status", "user_id", "status"),
    )


class UserResponseModel(ModelBase):
    """One persisted response row. Rows are only ever inserted."""
    __tablename__ = "user_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(36), ForeignKey("user_test_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(String(36), nullable=False)
    question_option_id = Column(String(36), nullable=True)
    response_value = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
