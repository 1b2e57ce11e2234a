"""
Assessment Models

This module defines the read-only content model of an assessment (tests,
sections, questions and their options) together with the session record.

Questions form a closed family of four kinds. Each kind is its own frozen
dataclass carrying only the fields that kind needs; ``QuestionType`` is the
tag, and ``build_question`` is the only way raw persisted rows become
questions.
"""

import enum
import json
import datetime
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple, Type

from eiprep.common.exceptions import MalformedQuestion
from eiprep.common.logger import app_logger

logger = app_logger.getChild("assessments.models")

# Fallback bounds for numeric-scale questions authored without explicit bounds
DEFAULT_SCALE_MIN = 1
DEFAULT_SCALE_MAX = 5


class QuestionType(enum.Enum):
    """The closed set of question kinds."""
    SINGLE_CHOICE = "single-choice"
    MATRIX_RATING = "matrix-rating"
    RANKED_SEQUENCE = "ranked-sequence"
    NUMERIC_SCALE = "numeric-scale"


class Presentation(enum.Enum):
    """How a single-choice question is framed. Scoring ignores it."""
    MCQ = "mcq"
    SCENARIO = "scenario"
    VIDEO = "video"


class PracticeTestKind(enum.Enum):
    """Kinds of practice test."""
    WORKSHEET = "worksheet"
    EXAM = "exam"


class Branch(enum.Enum):
    """Competency areas used to tag tests, sections and questions."""
    PERCEIVING = "PERCEIVING"
    USING = "USING"
    UNDERSTANDING = "UNDERSTANDING"
    MANAGING = "MANAGING"

    @property
    def label(self) -> str:
        return f"{self.value.capitalize()} Emotions"

    @classmethod
    def parse(cls, value: Any) -> Optional['Branch']:
        """Parse a stored tag, returning None for empty or unknown tags."""
        if value is None or isinstance(value, Branch):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            logger.debug(f"Ignoring unknown branch tag {value!r}")
            return None


class SessionStatus(enum.Enum):
    """Status of a test session."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Stored type tags, normalised to lower case with '-' separators
TYPE_ALIASES: Dict[str, Tuple[QuestionType, Optional[Presentation]]] = {
    "single-choice": (QuestionType.SINGLE_CHOICE, Presentation.MCQ),
    "mcq": (QuestionType.SINGLE_CHOICE, Presentation.MCQ),
    "scenario": (QuestionType.SINGLE_CHOICE, Presentation.SCENARIO),
    "video": (QuestionType.SINGLE_CHOICE, Presentation.VIDEO),
    "matrix-rating": (QuestionType.MATRIX_RATING, None),
    "likert-grid": (QuestionType.MATRIX_RATING, None),
    "ranked-sequence": (QuestionType.RANKED_SEQUENCE, None),
    "emotion-order": (QuestionType.RANKED_SEQUENCE, None),
    "numeric-scale": (QuestionType.NUMERIC_SCALE, None),
    "sliding-scale": (QuestionType.NUMERIC_SCALE, None),
}


def parse_question_type(raw: Any, question_id: Any = None) -> Tuple[QuestionType, Optional[Presentation]]:
    """
    Resolve a stored type tag against the closed set.

    Args:
        raw: The stored tag, e.g. ``"LIKERT_GRID"`` or ``"numeric-scale"``
        question_id: Used in the error message

    Returns:
        Tuple of question type and single-choice presentation (None otherwise)

    Raises:
        MalformedQuestion: If the tag is missing or not recognised
    """
    if isinstance(raw, QuestionType):
        return raw, Presentation.MCQ if raw is QuestionType.SINGLE_CHOICE else None
    if not raw:
        raise MalformedQuestion(question_id, "missing type tag")
    key = str(raw).strip().lower().replace("_", "-").replace(" ", "-")
    if key not in TYPE_ALIASES:
        raise MalformedQuestion(question_id, f"unknown type tag {raw!r}")
    return TYPE_ALIASES[key]


def _parse_datetime(value: Any) -> Optional[datetime.datetime]:
    if value is None or isinstance(value, datetime.datetime):
        return value
    return datetime.datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class Option:
    """
    One selectable option of a question.

    For matrix-rating questions each option is a row of the grid; for
    single-choice questions ``value`` is the token recorded with the response.
    """
    id: str
    question_id: str
    label: str
    value: str
    order_index: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any], question_id: str) -> 'Option':
        if not row.get("id"):
            raise MalformedQuestion(question_id, "option without id")
        return cls(
            id=str(row["id"]),
            question_id=question_id,
            label=str(row.get("label") or ""),
            value="" if row.get("value") is None else str(row["value"]),
            order_index=int(row.get("order_index") or 0),
        )


@dataclass(frozen=True)
class Question:
    """
    Fields common to every question kind.

    Attributes:
        id: Unique identifier
        section_id: Owning section
        order_index: Position within the section
        text: Prompt shown to the user
        scenario: Optional scenario text framing the prompt
        image_url: Optional stimulus image
        video_url: Optional stimulus video
        explanation: Optional explanation shown in review
        branch: Optional competency tag
        options: Options sorted by position (empty for numeric-scale)
    """
    question_type: ClassVar[QuestionType]

    id: str
    section_id: str
    order_index: int
    text: str
    scenario: Optional[str] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    explanation: Optional[str] = None
    branch: Optional[Branch] = None
    options: Tuple[Option, ...] = ()

    @property
    def option_ids(self) -> Tuple[str, ...]:
        return tuple(option.id for option in self.options)

    def option(self, option_id: str) -> Optional[Option]:
        """Return the option with the given id, if any."""
        for option in self.options:
            if option.id == option_id:
                return option
        return None


@dataclass(frozen=True)
class SingleChoiceQuestion(Question):
    """Pick one option. Covers plain, scenario-framed and video-prefaced MCQs."""
    question_type: ClassVar[QuestionType] = QuestionType.SINGLE_CHOICE

    presentation: Presentation = Presentation.MCQ


@dataclass(frozen=True)
class MatrixRatingQuestion(Question):
    """Rate every row (option) on an ordinal scale."""
    question_type: ClassVar[QuestionType] = QuestionType.MATRIX_RATING

    @property
    def rows(self) -> Tuple[Option, ...]:
        return self.options


@dataclass(frozen=True)
class RankedSequenceQuestion(Question):
    """Put every option in order. The key is the exact order of option ids."""
    question_type: ClassVar[QuestionType] = QuestionType.RANKED_SEQUENCE

    correct_order: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class NumericScaleQuestion(Question):
    """Pick a number on a bounded slider."""
    question_type: ClassVar[QuestionType] = QuestionType.NUMERIC_SCALE

    scale_min: float = DEFAULT_SCALE_MIN
    scale_max: float = DEFAULT_SCALE_MAX


QUESTION_CLASSES: Dict[QuestionType, Type[Question]] = {
    QuestionType.SINGLE_CHOICE: SingleChoiceQuestion,
    QuestionType.MATRIX_RATING: MatrixRatingQuestion,
    QuestionType.RANKED_SEQUENCE: RankedSequenceQuestion,
    QuestionType.NUMERIC_SCALE: NumericScaleQuestion,
}


def require_exhaustive(handlers: Dict[QuestionType, Any], owner: str) -> Dict[QuestionType, Any]:
    """
    Check that a per-type dispatch table covers every question type.

    Dispatch tables call this at import time, so adding a question kind
    without teaching every component about it fails immediately.
    """
    missing = set(QuestionType) - set(handlers)
    if missing:
        names = ", ".join(sorted(t.value for t in missing))
        raise TypeError(f"{owner} does not handle question types: {names}")
    return handlers


require_exhaustive(QUESTION_CLASSES, "QUESTION_CLASSES")


def _parse_correct_order(raw: Any, question_id: str) -> Optional[Tuple[str, ...]]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise MalformedQuestion(question_id, f"correct_order is not valid JSON: {e}")
    if not isinstance(raw, (list, tuple)):
        raise MalformedQuestion(question_id, "correct_order must be a list of option ids")
    return tuple(str(option_id) for option_id in raw)


def _parse_bound(raw: Any, default: float, name: str, question_id: str) -> float:
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise MalformedQuestion(question_id, f"{name} is not a number: {raw!r}")
    return int(value) if value.is_integer() else value


def build_question(row: Dict[str, Any]) -> Question:
    """
    Assemble one question from its persisted row.

    The row carries the question columns plus a nested ``options`` list
    (``question_options`` is accepted too). Options are sorted by
    ``order_index``.

    Args:
        row: Raw question row

    Returns:
        The typed question

    Raises:
        MalformedQuestion: If the row violates the schema for its type
    """
    question_id = row.get("id")
    if not question_id:
        raise MalformedQuestion(None, "missing id")
    question_id = str(question_id)

    question_type, presentation = parse_question_type(row.get("type"), question_id)

    text = row.get("question_text") or row.get("text")
    if not text:
        raise MalformedQuestion(question_id, "missing question text")

    raw_options = row.get("options")
    if raw_options is None:
        raw_options = row.get("question_options") or []
    options = tuple(sorted(
        (Option.from_row(option_row, question_id) for option_row in raw_options),
        key=lambda option: option.order_index
    ))
    option_ids = [option.id for option in options]
    if len(set(option_ids)) != len(option_ids):
        raise MalformedQuestion(question_id, "duplicate option ids")

    common = dict(
        id=question_id,
        section_id=str(row.get("section_id") or ""),
        order_index=int(row.get("order_index") or 0),
        text=str(text),
        scenario=row.get("scenario_context"),
        image_url=row.get("scenario_image_url"),
        video_url=row.get("video_url"),
        explanation=row.get("explanation"),
        branch=Branch.parse(row.get("branch")),
    )

    if question_type is QuestionType.NUMERIC_SCALE:
        if options:
            logger.debug(f"Ignoring {len(options)} options on numeric-scale question {question_id}")
        scale_min = _parse_bound(row.get("scale_min"), DEFAULT_SCALE_MIN, "scale_min", question_id)
        scale_max = _parse_bound(row.get("scale_max"), DEFAULT_SCALE_MAX, "scale_max", question_id)
        if scale_min > scale_max:
            raise MalformedQuestion(question_id, f"scale_min {scale_min} exceeds scale_max {scale_max}")
        return NumericScaleQuestion(scale_min=scale_min, scale_max=scale_max, **common)

    if not options:
        raise MalformedQuestion(question_id, f"{question_type.value} question has no options")

    if question_type is QuestionType.SINGLE_CHOICE:
        return SingleChoiceQuestion(options=options, presentation=presentation, **common)

    if question_type is QuestionType.MATRIX_RATING:
        return MatrixRatingQuestion(options=options, **common)

    correct_order = _parse_correct_order(row.get("correct_order"), question_id)
    if correct_order is not None and sorted(correct_order) != sorted(option_ids):
        raise MalformedQuestion(question_id, "correct_order is not a permutation of the option ids")
    return RankedSequenceQuestion(options=options, correct_order=correct_order, **common)


@dataclass(frozen=True)
class Section:
    """
    An ordered group of questions with shared instructions.

    Attributes:
        id: Unique identifier
        test_id: Owning test
        title: Display title
        instructions: Free-text instructions
        order_index: Position within the test
        branch: Optional competency tag
        questions: Questions sorted by position
    """
    id: str
    test_id: str
    title: str
    instructions: str = ""
    order_index: int = 0
    branch: Optional[Branch] = None
    questions: Tuple[Question, ...] = ()

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Section':
        """Assemble a section and its nested question rows."""
        questions = tuple(sorted(
            (build_question(question_row) for question_row in row.get("questions") or []),
            key=lambda question: question.order_index
        ))
        return cls(
            id=str(row["id"]),
            test_id=str(row.get("test_id") or ""),
            title=str(row.get("title") or ""),
            instructions=row.get("instructions") or "",
            order_index=int(row.get("order_index") or 0),
            branch=Branch.parse(row.get("branch")),
            questions=questions,
        )


def assemble_sections(rows: List[Dict[str, Any]]) -> List[Section]:
    """
    Build the ordered section list of a test from raw nested rows.

    Raises:
        MalformedQuestion: If any question is malformed
    """
    return sorted((Section.from_row(row) for row in rows), key=lambda section: section.order_index)


def iter_questions(sections: List[Section]) -> Iterator[Question]:
    """Yield every question of every section in presentation order."""
    for section in sections:
        yield from section.questions


@dataclass(frozen=True)
class PracticeTest:
    """
    A practice test. Read-only to the engine.

    ``time_limit_minutes`` is informational; the engine never enforces it.
    """
    id: str
    title: str
    kind: PracticeTestKind = PracticeTestKind.EXAM
    branch: Optional[Branch] = None
    time_limit_minutes: Optional[int] = None
    description: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'PracticeTest':
        try:
            kind = PracticeTestKind(row.get("type") or PracticeTestKind.EXAM.value)
        except ValueError:
            logger.warning(f"Unknown test kind {row.get('type')!r} on test {row.get('id')}, using exam")
            kind = PracticeTestKind.EXAM
        return cls(
            id=str(row["id"]),
            title=str(row.get("title") or ""),
            kind=kind,
            branch=Branch.parse(row.get("branch")),
            time_limit_minutes=row.get("time_limit_minutes"),
            description=row.get("description"),
        )


@dataclass
class Session:
    """
    One user's attempt at one test.

    Attributes:
        id: Unique identifier
        user_id: Owning user
        test_id: Test being attempted
        status: in_progress until the single completion write
        started_at: When the attempt began
        completed_at: When it was scored
        score: Final percentage 0-100
        earned_points: Raw earned points
        possible_points: Raw possible points
        reflection_score: Optional post-assessment self rating (1-5)
        legacy_payload: Denormalised question/answer blob of the old flat format
    """
    id: str
    user_id: str
    test_id: str
    status: SessionStatus = SessionStatus.IN_PROGRESS
    started_at: Optional[datetime.datetime] = None
    completed_at: Optional[datetime.datetime] = None
    score: Optional[int] = None
    earned_points: Optional[float] = None
    possible_points: Optional[float] = None
    reflection_score: Optional[int] = None
    legacy_payload: Optional[Any] = field(default=None, repr=False)

    @property
    def is_completed(self) -> bool:
        return self.status is SessionStatus.COMPLETED

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Session':
        return cls(
            id=str(row["id"]),
            user_id=str(row.get("user_id") or ""),
            test_id=str(row.get("test_id") or ""),
            status=SessionStatus(row.get("status") or SessionStatus.IN_PROGRESS.value),
            started_at=_parse_datetime(row.get("started_at")),
            completed_at=_parse_datetime(row.get("completed_at")),
            score=row.get("score"),
            earned_points=row.get("earned_points"),
            possible_points=row.get("possible_points"),
            reflection_score=row.get("reflection_score"),
            legacy_payload=row.get("legacy_payload"),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "test_id": self.test_id,
            "status": self.status.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "score": self.score,
            "earned_points": self.earned_points,
            "possible_points": self.possible_points,
            "reflection_score": self.reflection_score,
            "legacy_payload": self.legacy_payload,
        }
