"""
Scoring Engine

Scores a completed session against the answer key index.

Every question carries a fixed weight of one possible point, so no question
kind dominates the total whatever its internal point scale. A keyed, answered
question earns:

    single-choice    the consensus points of the chosen option
    matrix-rating    the sum of the per-row consensus points
    ranked-sequence  1 for an exact match of the correct order, else 0
    numeric-scale    the key's points on exact numeric equality, else 0

With the per-question cap enabled (the default) a question's contribution is
``min(earned, 1)``. Unkeyed and unanswered questions contribute nothing but
still count towards the possible points.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional

from eiprep.assessments.answer_key import (
    AnswerKey,
    AnswerKeyIndex,
    MatrixKey,
    ScaleKey,
    SequenceKey,
    SingleChoiceKey,
    UnkeyedKey,
)
from eiprep.assessments.models import Question, QuestionType, Section, iter_questions, require_exhaustive
from eiprep.assessments.responses import ResponseStore
from eiprep.common.logger import app_logger, log_execution_time

logger = app_logger.getChild("assessments.scoring")

QUESTION_WEIGHT = 1.0


@dataclass(frozen=True)
class ScoreResult:
    """
    Outcome of scoring one session.

    Attributes:
        percentage: Integer score 0-100
        earned_points: Sum of per-question contributions
        possible_points: Number of questions scored
        question_scores: Contribution of each question, by id
    """
    percentage: int
    earned_points: float
    possible_points: float
    question_scores: Dict[str, float] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percentage": self.percentage,
            "earned_points": self.earned_points,
            "possible_points": self.possible_points,
            "question_scores": dict(self.question_scores),
        }


def to_percentage(earned: float, possible: float) -> int:
    """
    Integer percentage, rounding halves up. Zero possible points scores 0.
    """
    if possible <= 0:
        return 0
    value = math.floor(100.0 * earned / possible + 0.5)
    return max(0, min(100, int(value)))


def _score_single_choice(question: Question, key: SingleChoiceKey, value: Any) -> float:
    return key.points_for(value)


def _score_matrix(question: Question, key: MatrixKey, value: Any) -> float:
    return sum(key.points_for(row_id, rating) for row_id, rating in value.items())


def _score_sequence(question: Question, key: SequenceKey, value: Any) -> float:
    return 1.0 if tuple(value) == key.correct_order else 0.0


def _score_scale(question: Question, key: ScaleKey, value: Any) -> float:
    return key.points if float(value) == float(key.correct_value) else 0.0


_SCORERS: Dict[QuestionType, Callable[[Question, Any, Any], float]] = require_exhaustive({
    QuestionType.SINGLE_CHOICE: _score_single_choice,
    QuestionType.MATRIX_RATING: _score_matrix,
    QuestionType.RANKED_SEQUENCE: _score_sequence,
    QuestionType.NUMERIC_SCALE: _score_scale,
}, "scoring")


def score_question(question: Question, key: Optional[AnswerKey], value: Any,
                   cap_per_question: bool = True) -> float:
    """
    Points one question contributes to the session total.

    Args:
        question: The question
        key: Its answer key entry (None or UnkeyedKey earns nothing)
        value: The stored response (None earns nothing)
        cap_per_question: Limit the contribution to one point
    """
    if value is None or key is None or isinstance(key, UnkeyedKey):
        return 0.0
    earned = _SCORERS[question.question_type](question, key, value)
    if cap_per_question:
        earned = min(earned, QUESTION_WEIGHT)
    return earned


def score(
    sections: Iterable[Section],
    store: ResponseStore,
    index: AnswerKeyIndex,
    cap_per_question: bool = True
) -> ScoreResult:
    """
    Score every question of every section exactly once.

    Pure: the same inputs always give the same result.

    Args:
        sections: Ordered sections of the test
        store: Responses to score
        index: Answer key index built for the same questions
        cap_per_question: Limit each question's contribution to one point

    Returns:
        ScoreResult with possible_points equal to the number of questions
    """
    earned_points = 0.0
    possible_points = 0.0
    question_scores: Dict[str, float] = {}

    for question in iter_questions(list(sections)):
        possible_points += QUESTION_WEIGHT
        points = score_question(question, index.get(question.id), store.get(question.id), cap_per_question)
        question_scores[question.id] = points
        earned_points += points

    return ScoreResult(
        percentage=to_percentage(earned_points, possible_points),
        earned_points=earned_points,
        possible_points=possible_points,
        question_scores=question_scores,
    )


class ScoringEngine:
    """Scores sessions with a fixed capping policy."""

    def __init__(self, cap_per_question: bool = True):
        self.cap_per_question = cap_per_question

    @log_execution_time(logger)
    def score(self, sections: Iterable[Section], store: ResponseStore, index: AnswerKeyIndex) -> ScoreResult:
        result = score(sections, store, index, self.cap_per_question)
        logger.debug(
            f"Scored {result.earned_points}/{result.possible_points} ({result.percentage}%)"
        )
        return result
