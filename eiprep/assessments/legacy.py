"""
Legacy Session Adapter

Sessions recorded before tests had structured sections carry their content as
one denormalised blob on the session row:

    {
        "questions": [
            {"id": "q1", "branch": "PERCEIVING", "type": "MCQ",
             "scenario": "...", "imageUrl": "...", "explanation": "...",
             "options": [{"id": "a", "text": "...", "score": 0.6}, ...]},
            ...
        ],
        "answers": {"q1": "a", "q2": 0.6, ...}
    }

An answer is either the chosen option id or the chosen option's score.

The adapter translates the blob into the raw section, answer key and response
rows the primary path already understands, so review never special-cases the
legacy format. Every legacy question becomes a single-choice question in one
synthesised section, and each option's consensus score becomes its key entry.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from eiprep.assessments.answer_key import AnswerKeyIndex, build_answer_key_index, collect_key_rows
from eiprep.assessments.models import (
    QuestionType,
    Section,
    TYPE_ALIASES,
    assemble_sections,
    iter_questions,
)
from eiprep.assessments.responses import ResponseStore, hydrate_response_store
from eiprep.common.exceptions import ReviewUnavailable
from eiprep.common.logger import app_logger

logger = app_logger.getChild("assessments.legacy")

LEGACY_SECTION_TITLE = "Assessment"


@dataclass(frozen=True)
class LegacyView:
    """The primary-path shapes synthesised from a legacy blob."""
    sections: List[Section]
    index: AnswerKeyIndex
    store: ResponseStore


def _load_payload(payload: Any, session_id: str) -> Dict[str, Any]:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise ReviewUnavailable(session_id, f"legacy payload is not valid JSON: {e}")
    if not isinstance(payload, dict) or not isinstance(payload.get("questions"), list):
        raise ReviewUnavailable(session_id, "legacy payload has no question list")
    return payload


def _legacy_type(raw: Any) -> str:
    # Keep the presentation of single-choice aliases; everything else is a plain MCQ
    key = str(raw or "").strip().lower().replace("_", "-")
    question_type, _ = TYPE_ALIASES.get(key, (None, None))
    return key if question_type is QuestionType.SINGLE_CHOICE else "mcq"


def _score_equals(left: Any, right: Any) -> bool:
    try:
        return float(left) == float(right)
    except (TypeError, ValueError):
        return False


class LegacySessionAdapter:
    """Translates a legacy session blob into sections, keys and responses."""

    def __init__(self, test_id: str, session_id: str):
        self.test_id = test_id
        self.session_id = session_id
        self.section_id = f"legacy-{session_id}"

    def section_rows(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Raw nested section rows, in the shape ``list_sections`` returns."""
        questions = []
        for position, item in enumerate(payload["questions"]):
            question_id = str(item.get("id") or f"{self.section_id}-q{position}")
            options = []
            answer_keys = []
            for option_position, option in enumerate(item.get("options") or []):
                option_id = str(option.get("id") or f"{question_id}-o{option_position}")
                points = option.get("score") or 0
                options.append({
                    "id": option_id,
                    "question_id": question_id,
                    "label": option.get("text") or "",
                    "value": str(points),
                    "order_index": option_position,
                })
                answer_keys.append({
                    "question_id": question_id,
                    "question_option_id": option_id,
                    "points": points,
                })
            questions.append({
                "id": question_id,
                "section_id": self.section_id,
                "type": _legacy_type(item.get("type")),
                "question_text": item.get("question") or item.get("scenario") or f"Question {position + 1}",
                "scenario_context": item.get("scenario"),
                "scenario_image_url": item.get("imageUrl"),
                "explanation": item.get("explanation"),
                "branch": item.get("branch"),
                "order_index": position,
                "options": options,
                "answer_keys": answer_keys,
            })
        return [{
            "id": self.section_id,
            "test_id": self.test_id,
            "title": LEGACY_SECTION_TITLE,
            "instructions": "",
            "order_index": 0,
            "questions": questions,
        }]

    def response_rows(self, payload: Dict[str, Any], sections: List[Section]) -> List[Dict[str, Any]]:
        """Raw response rows, in the shape ``list_responses`` returns."""
        answers = payload.get("answers") or {}
        rows = []
        for question in iter_questions(sections):
            if question.id not in answers:
                continue
            answer = answers[question.id]
            option = question.option(str(answer)) if isinstance(answer, str) else None
            if option is None:
                # Older rows recorded the chosen option's score instead of its id
                option = next((o for o in question.options if _score_equals(o.value, answer)), None)
            if option is None:
                logger.warning(f"Legacy answer {answer!r} matches no option of question {question.id}")
                continue
            rows.append({
                "session_id": self.session_id,
                "question_id": question.id,
                "question_option_id": option.id,
                "response_value": option.value,
            })
        return rows

    def adapt(self, payload: Any) -> LegacyView:
        """
        Build the review view of a legacy session.

        Raises:
            ReviewUnavailable: If the payload is unreadable
            MalformedQuestion: If a legacy question cannot be assembled
        """
        payload = _load_payload(payload, self.session_id)
        raw_sections = self.section_rows(payload)
        sections = assemble_sections(raw_sections)
        questions = list(iter_questions(sections))
        index = build_answer_key_index(questions, collect_key_rows(raw_sections))
        store = hydrate_response_store(questions, self.response_rows(payload, sections))
        logger.info(f"Adapted legacy session {self.session_id} with {len(questions)} questions")
        return LegacyView(sections=sections, index=index, store=store)


def adapt_legacy_session(test_id: str, session_id: str, payload: Any) -> LegacyView:
    """Shortcut for ``LegacySessionAdapter(test_id, session_id).adapt(payload)``."""
    return LegacySessionAdapter(test_id, session_id).adapt(payload)


def has_legacy_payload(payload: Optional[Any]) -> bool:
    return payload not in (None, "", {}, [])
