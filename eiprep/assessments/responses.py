"""
Response Store

The in-memory working set of a session's answers, keyed by question id, and
the codec that converts between those answers and persisted response rows.

In-memory value shapes:

    single-choice    str                 chosen option id
    matrix-rating    Dict[str, str]      row option id -> rating value
    ranked-sequence  List[str]           option ids in the user's order
    numeric-scale    int | float         slider value

Persisted rows (``user_responses``) are append-only. Decoding replays them in
order through ``ResponseStore.set`` so a later row for the same question wins.
"""

import copy
import json
from collections import OrderedDict
from numbers import Integral, Real
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from eiprep.assessments.models import (
    MatrixRatingQuestion,
    NumericScaleQuestion,
    Question,
    QuestionType,
    RankedSequenceQuestion,
    SingleChoiceQuestion,
    require_exhaustive,
)
from eiprep.common.exceptions import InvalidAnswer, ReadOnlyResponseStore
from eiprep.common.logger import app_logger

logger = app_logger.getChild("assessments.responses")

ResponseValue = Union[str, Dict[str, str], List[str], int, float]


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _single_choice_complete(question: SingleChoiceQuestion, value: Any) -> bool:
    return isinstance(value, str) and value != ""


def _matrix_complete(question: MatrixRatingQuestion, value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    return all(value.get(row.id) not in (None, "") for row in question.rows)


def _sequence_complete(question: RankedSequenceQuestion, value: Any) -> bool:
    # The UI only ever produces permutations, so length is the whole check
    return isinstance(value, (list, tuple)) and len(value) == len(question.options)


def _scale_complete(question: NumericScaleQuestion, value: Any) -> bool:
    return _is_number(value) and question.scale_min <= value <= question.scale_max


_COMPLETENESS: Dict[QuestionType, Callable[[Any, Any], bool]] = require_exhaustive({
    QuestionType.SINGLE_CHOICE: _single_choice_complete,
    QuestionType.MATRIX_RATING: _matrix_complete,
    QuestionType.RANKED_SEQUENCE: _sequence_complete,
    QuestionType.NUMERIC_SCALE: _scale_complete,
}, "completeness check")


class ResponseStore:
    """
    Working set of answers for one session.

    ``set`` overwrites by question id; there is no history. Once frozen (for
    review) every write raises ReadOnlyResponseStore.
    """

    def __init__(self, values: Optional[Mapping[str, ResponseValue]] = None):
        self._values: Dict[str, ResponseValue] = {}
        self._frozen = False
        for question_id, value in (values or {}).items():
            self.set(question_id, value)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> 'ResponseStore':
        """Make the store read-only. Returns self for chaining."""
        self._frozen = True
        return self

    def set(self, question_id: str, value: ResponseValue) -> None:
        """Overwrite the value stored for a question."""
        if self._frozen:
            raise ReadOnlyResponseStore(question_id)
        self._values[question_id] = copy.deepcopy(value)

    def set_row(self, question_id: str, row_id: str, rating: str) -> None:
        """Set a single row of a matrix-rating answer, keeping the other rows."""
        current = self._values.get(question_id)
        rows = dict(current) if isinstance(current, Mapping) else {}
        rows[row_id] = rating
        self.set(question_id, rows)

    def get(self, question_id: str) -> Optional[ResponseValue]:
        """Return a copy of the stored value, or None if unanswered."""
        if question_id not in self._values:
            return None
        return copy.deepcopy(self._values[question_id])

    def is_complete(self, question: Question) -> bool:
        """
        Whether the stored value has the full shape the question needs.

        This is a shape check only; it says nothing about correctness.
        """
        if question.id not in self._values:
            return False
        return _COMPLETENESS[question.question_type](question, self._values[question.id])

    def snapshot(self) -> Dict[str, ResponseValue]:
        """Deep copy of every stored value."""
        return copy.deepcopy(self._values)

    def copy(self) -> 'ResponseStore':
        """An unfrozen copy of this store."""
        return ResponseStore(self._values)

    @property
    def question_ids(self) -> List[str]:
        return list(self._values)

    def __contains__(self, question_id: str) -> bool:
        return question_id in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ResponseStore):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"ResponseStore({len(self._values)} answers, {state})"


# ---------------------------------------------------------------------------
# Answer normalisation
# ---------------------------------------------------------------------------

def _coerce_single_choice(question: SingleChoiceQuestion, value: Any) -> ResponseValue:
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise InvalidAnswer(question.id, "expected an option id")
    if question.option(str(value)) is None:
        raise InvalidAnswer(question.id, f"unknown option {value}")
    return str(value)


def _coerce_matrix(question: MatrixRatingQuestion, value: Any) -> ResponseValue:
    if not isinstance(value, Mapping):
        raise InvalidAnswer(question.id, "expected a mapping of row id to rating")
    return {str(row_id): str(rating) for row_id, rating in value.items() if rating is not None}


def _coerce_sequence(question: RankedSequenceQuestion, value: Any) -> ResponseValue:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise InvalidAnswer(question.id, "expected an ordered list of option ids")
    return [str(option_id) for option_id in value]


def _coerce_scale(question: NumericScaleQuestion, value: Any) -> ResponseValue:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise InvalidAnswer(question.id, f"{value!r} is not a number")
    if not _is_number(value):
        raise InvalidAnswer(question.id, "expected a number")
    # Only plain int and float survive encoding and comparison with the bounds
    return int(value) if isinstance(value, Integral) else float(value)


_COERCERS: Dict[QuestionType, Callable[[Any, Any], ResponseValue]] = require_exhaustive({
    QuestionType.SINGLE_CHOICE: _coerce_single_choice,
    QuestionType.MATRIX_RATING: _coerce_matrix,
    QuestionType.RANKED_SEQUENCE: _coerce_sequence,
    QuestionType.NUMERIC_SCALE: _coerce_scale,
}, "answer normalisation")


def coerce_answer(question: Question, value: Any) -> ResponseValue:
    """
    Normalise a UI value into the in-memory shape for the question's type.

    Ratings become strings and ranked ids become a list of strings, which is
    exactly what decoding persisted rows produces.

    Raises:
        InvalidAnswer: If the value can never be an answer to this question
    """
    return _COERCERS[question.question_type](question, value)


# ---------------------------------------------------------------------------
# Persisted row codec
# ---------------------------------------------------------------------------

def _row(session_id: str, question: Question, option_id: Optional[str], value: str) -> Dict[str, Any]:
    return {
        "session_id": session_id,
        "question_id": question.id,
        "question_option_id": option_id,
        "response_value": value,
    }


def _encode_single_choice(session_id: str, question: SingleChoiceQuestion, value: Any) -> List[Dict[str, Any]]:
    option = question.option(value)
    if option is None:
        return [_row(session_id, question, None, str(value))]
    return [_row(session_id, question, option.id, option.value)]


def _encode_matrix(session_id: str, question: MatrixRatingQuestion, value: Any) -> List[Dict[str, Any]]:
    ordered = [row.id for row in question.rows if row.id in value]
    ordered += [row_id for row_id in value if row_id not in ordered]
    return [_row(session_id, question, row_id, str(value[row_id])) for row_id in ordered]


def _encode_sequence(session_id: str, question: RankedSequenceQuestion, value: Any) -> List[Dict[str, Any]]:
    return [_row(session_id, question, None, json.dumps(list(value)))]


def _encode_scale(session_id: str, question: NumericScaleQuestion, value: Any) -> List[Dict[str, Any]]:
    return [_row(session_id, question, None, json.dumps(value))]


_ENCODERS = require_exhaustive({
    QuestionType.SINGLE_CHOICE: _encode_single_choice,
    QuestionType.MATRIX_RATING: _encode_matrix,
    QuestionType.RANKED_SEQUENCE: _encode_sequence,
    QuestionType.NUMERIC_SCALE: _encode_scale,
}, "response encoder")


def encode_response(session_id: str, question: Question, value: ResponseValue) -> List[Dict[str, Any]]:
    """
    Serialise one answer into ``user_responses`` rows.

    Matrix answers produce one row per answered row; every other type produces
    exactly one row.
    """
    return _ENCODERS[question.question_type](session_id, question, value)


def _decode_single_choice(question: SingleChoiceQuestion, rows: List[Dict[str, Any]],
                          store: ResponseStore) -> None:
    for row in rows:
        option_id = row.get("question_option_id")
        if option_id and question.option(str(option_id)) is not None:
            store.set(question.id, str(option_id))
            continue
        raw = row.get("response_value")
        if raw is None and not option_id:
            logger.warning(f"Single-choice response row without option or value on question {question.id}")
            continue
        match = next((o for o in question.options if o.value == raw), None)
        store.set(question.id, match.id if match else str(option_id or raw))


def _decode_matrix(question: MatrixRatingQuestion, rows: List[Dict[str, Any]],
                   store: ResponseStore) -> None:
    grid: Dict[str, str] = {}
    for row in rows:
        row_id = row.get("question_option_id")
        if not row_id:
            logger.warning(f"Matrix response row without option on question {question.id}")
            continue
        grid[str(row_id)] = str(row.get("response_value"))
    if grid:
        store.set(question.id, grid)


def _decode_sequence(question: RankedSequenceQuestion, rows: List[Dict[str, Any]],
                     store: ResponseStore) -> None:
    for row in rows:
        try:
            order = json.loads(row.get("response_value") or "")
        except ValueError:
            logger.warning(f"Unreadable ranked-sequence response on question {question.id}")
            continue
        if isinstance(order, list):
            store.set(question.id, [str(option_id) for option_id in order])


def _decode_scale(question: NumericScaleQuestion, rows: List[Dict[str, Any]],
                  store: ResponseStore) -> None:
    for row in rows:
        try:
            value = json.loads(row.get("response_value") or "")
        except ValueError:
            value = None
        if not _is_number(value):
            logger.warning(f"Unreadable numeric-scale response on question {question.id}")
            continue
        store.set(question.id, value)


_DECODERS = require_exhaustive({
    QuestionType.SINGLE_CHOICE: _decode_single_choice,
    QuestionType.MATRIX_RATING: _decode_matrix,
    QuestionType.RANKED_SEQUENCE: _decode_sequence,
    QuestionType.NUMERIC_SCALE: _decode_scale,
}, "response decoder")


def hydrate_response_store(questions: Iterable[Question], rows: Iterable[Dict[str, Any]]) -> ResponseStore:
    """
    Rebuild a response store from persisted rows.

    Rows are grouped by question in their original order and decoded according
    to the owning question's type. Rows for questions not in ``questions`` are
    skipped. The returned store is not frozen.
    """
    by_id = OrderedDict((question.id, question) for question in questions)
    grouped: Dict[str, List[Dict[str, Any]]] = OrderedDict()
    for row in rows:
        question_id = str(row.get("question_id"))
        if question_id not in by_id:
            logger.warning(f"Skipping response for unknown question {question_id}")
            continue
        grouped.setdefault(question_id, []).append(row)

    store = ResponseStore()
    for question_id, question_rows in grouped.items():
        question = by_id[question_id]
        _DECODERS[question.question_type](question, question_rows, store)
    return store
