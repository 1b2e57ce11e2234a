"""
Shared fixtures for the assessment engine tests.

Content is described with raw rows in the same shape the repositories return,
so every test exercises the real assembly path.
"""

import datetime
from typing import Any, Dict, List

import pytest

from eiprep.assessments.memory_repository import MemoryAssessmentRepository
from eiprep.config import Settings


def _option(option_id: str, value: Any = None, order_index: int = 0, label: str = None) -> Dict[str, Any]:
    return {
        "id": option_id,
        "label": label or option_id.upper(),
        "value": option_id if value is None else value,
        "order_index": order_index,
    }


def _question(question_id: str, qtype: str, options=(), answer_keys=(), order_index: int = 0,
              section_id: str = "s1", **columns) -> Dict[str, Any]:
    row = {
        "id": question_id,
        "section_id": section_id,
        "type": qtype,
        "question_text": f"Prompt for {question_id}",
        "order_index": order_index,
        "options": list(options),
        "answer_keys": [dict(key, question_id=question_id) for key in answer_keys],
    }
    row.update(columns)
    return row


def _section(section_id: str, questions: List[Dict[str, Any]], order_index: int = 0,
             test_id: str = "t1", **columns) -> Dict[str, Any]:
    row = {
        "id": section_id,
        "test_id": test_id,
        "title": f"Section {section_id}",
        "instructions": "Answer every question.",
        "order_index": order_index,
        "questions": [dict(question, section_id=section_id) for question in questions],
    }
    row.update(columns)
    return row


@pytest.fixture
def make_option():
    return _option


@pytest.fixture
def make_question():
    return _question


@pytest.fixture
def make_section():
    return _section


@pytest.fixture
def single_choice_row():
    """Single-choice with partial credit: a is best, b earns half."""
    return _question(
        "q-single", "MCQ",
        options=[_option("c", order_index=2), _option("a", order_index=0), _option("b", order_index=1)],
        answer_keys=[
            {"question_option_id": "a", "points": 1.0},
            {"question_option_id": "b", "points": 0.5},
        ],
        branch="PERCEIVING",
    )


@pytest.fixture
def matrix_row():
    """Three-row matrix whose best ratings sum to exactly one point."""
    return _question(
        "q-matrix", "LIKERT_GRID",
        options=[_option("r1", order_index=0), _option("r2", order_index=1), _option("r3", order_index=2)],
        answer_keys=[
            {"question_option_id": "r1", "correct_answer": "5", "points": 0.5},
            {"question_option_id": "r1", "correct_answer": "4", "points": 0.25},
            {"question_option_id": "r2", "correct_answer": "3", "points": 0.25},
            {"question_option_id": "r3", "correct_answer": "1", "points": 0.25},
        ],
        order_index=1,
    )


@pytest.fixture
def sequence_row():
    return _question(
        "q-sequence", "EMOTION_ORDER",
        options=[_option("x", order_index=0), _option("y", order_index=1), _option("z", order_index=2)],
        correct_order=["x", "y", "z"],
    )


@pytest.fixture
def scale_row():
    return _question(
        "q-scale", "SLIDING_SCALE",
        answer_keys=[{"correct_answer": "4", "points": 1}],
        scale_min=1, scale_max=5,
        order_index=1,
    )


@pytest.fixture
def test_row():
    return {
        "id": "t1",
        "type": "exam",
        "title": "Perceiving Emotions Practice",
        "branch": "PERCEIVING",
        "time_limit_minutes": 30,
        "description": "Faces and pictures",
    }


@pytest.fixture
def mixed_sections(single_choice_row, matrix_row, sequence_row, scale_row):
    """Two sections covering all four question types."""
    return [
        _section("s2", [sequence_row, scale_row], order_index=1),
        _section("s1", [single_choice_row, matrix_row], order_index=0),
    ]


@pytest.fixture
def correct_answers():
    """Answers earning full credit on every question of mixed_sections."""
    return {
        "q-single": "a",
        "q-matrix": {"r1": "5", "r2": "3", "r3": "1"},
        "q-sequence": ["x", "y", "z"],
        "q-scale": 4,
    }


@pytest.fixture
def repository(test_row, mixed_sections):
    repo = MemoryAssessmentRepository()
    repo.seed_test(test_row, mixed_sections)
    return repo


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def completed_at():
    return datetime.datetime(2026, 3, 14, 10, 30, tzinfo=datetime.timezone.utc)
