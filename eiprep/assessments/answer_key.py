"""
Answer Key Index

Turns persisted answer key rows into a scoring-ready lookup, one entry per
question. The shape of an entry depends on the question type:

    single-choice    SingleChoiceKey  {option_id: points}
    matrix-rating    MatrixKey        {row_option_id: {rating: points}}
    ranked-sequence  SequenceKey      correct_order taken from the question
    numeric-scale    ScaleKey         (correct_value, points)

Every question of the test gets an entry. A question with nothing to score
against gets an ``UnkeyedKey`` so callers can tell "no key" apart from
"unknown question". Building the index has no side effects; problems found in
the rows are collected in ``AnswerKeyIndex.issues`` for the caller to report.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from eiprep.assessments.models import (
    MatrixRatingQuestion,
    NumericScaleQuestion,
    Question,
    QuestionType,
    RankedSequenceQuestion,
    SingleChoiceQuestion,
    require_exhaustive,
)


@dataclass(frozen=True)
class SingleChoiceKey:
    """Consensus points per option. Every non-zero entry earns credit."""
    question_id: str
    points: Dict[str, float]

    @property
    def best_option_id(self) -> Optional[str]:
        """The highest-valued option, i.e. "the" correct answer."""
        if not self.points:
            return None
        return max(self.points, key=lambda option_id: self.points[option_id])

    @property
    def max_points(self) -> float:
        return max(self.points.values(), default=0.0)

    def points_for(self, option_id: str) -> float:
        return self.points.get(option_id, 0.0)


@dataclass(frozen=True)
class MatrixKey:
    """Consensus points per (row, rating). Rows score independently."""
    question_id: str
    rows: Dict[str, Dict[str, float]]

    @property
    def max_points(self) -> float:
        return sum(max(ratings.values(), default=0.0) for ratings in self.rows.values())

    def points_for(self, row_id: str, rating: str) -> float:
        return self.rows.get(row_id, {}).get(rating, 0.0)


@dataclass(frozen=True)
class SequenceKey:
    """All-or-nothing exact ordering of option ids."""
    question_id: str
    correct_order: Tuple[str, ...]

    @property
    def max_points(self) -> float:
        return 1.0


@dataclass(frozen=True)
class ScaleKey:
    """Exact numeric answer and the points it earns."""
    question_id: str
    correct_value: float
    points: float

    @property
    def max_points(self) -> float:
        return self.points


@dataclass(frozen=True)
class UnkeyedKey:
    """Marker for a question with no answer key. It can never earn points."""
    question_id: str

    @property
    def max_points(self) -> float:
        return 0.0


AnswerKey = Union[SingleChoiceKey, MatrixKey, SequenceKey, ScaleKey, UnkeyedKey]


@dataclass(frozen=True)
class AnswerKeyIndex:
    """
    Lookup from question id to its answer key.

    Attributes:
        keys: One entry per question of the test
        issues: Human readable notes about rows that could not be used
    """
    keys: Dict[str, AnswerKey]
    issues: Tuple[str, ...] = field(default=())

    def get(self, question_id: str) -> Optional[AnswerKey]:
        """Return the key for a question, or None if the question is unknown."""
        return self.keys.get(question_id)

    def is_keyed(self, question_id: str) -> bool:
        key = self.keys.get(question_id)
        return key is not None and not isinstance(key, UnkeyedKey)

    @property
    def unkeyed_question_ids(self) -> List[str]:
        return [qid for qid, key in self.keys.items() if isinstance(key, UnkeyedKey)]

    def overweighted_question_ids(self, limit: float = 1.0) -> List[str]:
        """Questions whose best attainable points exceed ``limit``."""
        return [qid for qid, key in self.keys.items() if key.max_points > limit]

    def __contains__(self, question_id: str) -> bool:
        return question_id in self.keys

    def __len__(self) -> int:
        return len(self.keys)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys)

    @classmethod
    def build(cls, questions: Iterable[Question], raw_rows: Iterable[Dict[str, Any]]) -> 'AnswerKeyIndex':
        return build_answer_key_index(questions, raw_rows)


def _to_points(raw: Any) -> float:
    return float(raw) if raw is not None else 0.0


def _to_number(raw: Any) -> Optional[float]:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return int(value) if value.is_integer() else value


def _build_single_choice(question: SingleChoiceQuestion, rows: List[Dict[str, Any]],
                         issues: List[str]) -> AnswerKey:
    points: Dict[str, float] = {}
    for row in rows:
        option_id = row.get("question_option_id")
        if not option_id and row.get("correct_answer") is not None:
            # Keys imported from text carry the answer instead of the option id
            answer = str(row["correct_answer"]).strip()
            match = next((o for o in question.options if answer in (o.value, o.label, o.id)), None)
            if match is None:
                issues.append(f"{question.id}: correct_answer {answer!r} matches no option")
                continue
            option_id = match.id
        if not option_id:
            issues.append(f"{question.id}: key row without option")
            continue
        option_id = str(option_id)
        if question.option(option_id) is None:
            issues.append(f"{question.id}: key refers to unknown option {option_id}")
        points[option_id] = _to_points(row.get("points"))
    return SingleChoiceKey(question.id, points) if points else UnkeyedKey(question.id)


def _build_matrix(question: MatrixRatingQuestion, rows: List[Dict[str, Any]],
                  issues: List[str]) -> AnswerKey:
    grid: Dict[str, Dict[str, float]] = defaultdict(dict)
    for row in rows:
        row_id = row.get("question_option_id")
        rating = row.get("correct_answer")
        if not row_id or rating is None or str(rating) == "":
            issues.append(f"{question.id}: matrix key row needs both option and rating")
            continue
        grid[str(row_id)][str(rating)] = _to_points(row.get("points"))
    return MatrixKey(question.id, dict(grid)) if grid else UnkeyedKey(question.id)


def _build_sequence(question: RankedSequenceQuestion, rows: List[Dict[str, Any]],
                    issues: List[str]) -> AnswerKey:
    # The order lives on the question itself
    if rows:
        issues.append(f"{question.id}: ignoring {len(rows)} key rows on ranked-sequence question")
    if question.correct_order is None:
        return UnkeyedKey(question.id)
    return SequenceKey(question.id, tuple(question.correct_order))


def _build_scale(question: NumericScaleQuestion, rows: List[Dict[str, Any]],
                 issues: List[str]) -> AnswerKey:
    candidates = []
    for row in rows:
        value = _to_number(row.get("correct_answer"))
        if value is None:
            issues.append(f"{question.id}: numeric key {row.get('correct_answer')!r} is not a number")
            continue
        candidates.append((value, _to_points(row.get("points"))))
    if not candidates:
        return UnkeyedKey(question.id)
    if len(candidates) > 1:
        issues.append(f"{question.id}: {len(candidates)} numeric keys, keeping the one worth most points")
    value, points = max(candidates, key=lambda candidate: candidate[1])
    return ScaleKey(question.id, value, points)


_BUILDERS: Dict[QuestionType, Callable[[Any, List[Dict[str, Any]], List[str]], AnswerKey]] = require_exhaustive({
    QuestionType.SINGLE_CHOICE: _build_single_choice,
    QuestionType.MATRIX_RATING: _build_matrix,
    QuestionType.RANKED_SEQUENCE: _build_sequence,
    QuestionType.NUMERIC_SCALE: _build_scale,
}, "answer key builder")


def build_answer_key_index(questions: Iterable[Question], raw_rows: Iterable[Dict[str, Any]]) -> AnswerKeyIndex:
    """
    Build the answer key index for a set of questions.

    Args:
        questions: Every question of the test
        raw_rows: Persisted answer key rows (``question_id``,
            ``question_option_id``, ``correct_answer``, ``points``)

    Returns:
        Index with exactly one entry per question
    """
    questions = list(questions)
    known = {question.id for question in questions}
    grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    issues: List[str] = []

    for row in raw_rows:
        question_id = row.get("question_id")
        if question_id is None or str(question_id) not in known:
            issues.append(f"key row for unknown question {question_id}")
            continue
        grouped[str(question_id)].append(row)

    keys: Dict[str, AnswerKey] = {}
    for question in questions:
        builder = _BUILDERS[question.question_type]
        keys[question.id] = builder(question, grouped.get(question.id, []), issues)

    return AnswerKeyIndex(keys=keys, issues=tuple(issues))


def collect_key_rows(raw_sections: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Flatten the answer key rows nested under each question of a section graph.

    Rows missing ``question_id`` inherit the id of the question they are nested
    under.
    """
    rows: List[Dict[str, Any]] = []
    for section in raw_sections:
        for question in section.get("questions") or []:
            for row in question.get("answer_keys") or []:
                if row.get("question_id") is None:
                    row = dict(row, question_id=question.get("id"))
                rows.append(row)
    return rows
