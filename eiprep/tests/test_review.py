"""
Tests for reconstructing completed sessions for review.
"""

import pytest

from eiprep.assessments.memory_repository import MemoryAssessmentRepository
from eiprep.assessments.review import ReviewReconstructor
from eiprep.common.exceptions import NotFoundError, ReadOnlyResponseStore, ReviewUnavailable


def _session_row(session_id="sess-1", test_id="t1", status="completed", completed_at=None, **columns):
    row = {
        "id": session_id,
        "user_id": "u1",
        "test_id": test_id,
        "status": status,
        "started_at": completed_at,
        "completed_at": completed_at if status == "completed" else None,
        "score": 75 if status == "completed" else None,
        "earned_points": 3.0 if status == "completed" else None,
        "possible_points": 4.0 if status == "completed" else None,
    }
    row.update(columns)
    return row


def _response(question_id, value, option_id=None, session_id="sess-1"):
    return {
        "session_id": session_id,
        "question_id": question_id,
        "question_option_id": option_id,
        "response_value": value,
    }


class TestReviewReconstructor:
    """Rebuilding sections, keys and responses from persisted rows."""

    @pytest.mark.asyncio
    async def test_unknown_session(self, repository):
        with pytest.raises(NotFoundError) as exc_info:
            await ReviewReconstructor(repository).reconstruct("missing")

        assert exc_info.value.resource_type == "Session"

    @pytest.mark.asyncio
    async def test_in_progress_session_cannot_be_reviewed(self, repository):
        repository.seed_session(_session_row(status="in_progress"))

        with pytest.raises(ReviewUnavailable):
            await ReviewReconstructor(repository).reconstruct("sess-1")

    @pytest.mark.asyncio
    async def test_replays_responses(self, repository, completed_at):
        """Test every question type is decoded and later duplicates win."""
        repository.seed_session(_session_row(completed_at=completed_at))
        await repository.insert_responses([
            _response("q-single", "b", option_id="b"),
            _response("q-matrix", "5", option_id="r1"),
            _response("q-matrix", "3", option_id="r2"),
            _response("q-matrix", "1", option_id="r3"),
            _response("q-sequence", '["y", "x", "z"]'),
            _response("q-scale", "4"),
            _response("q-single", "a", option_id="a"),
            _response("q-single", "c", option_id="c", session_id="other"),
        ])

        review = await ReviewReconstructor(repository).reconstruct("sess-1")

        assert review.store.snapshot() == {
            "q-single": "a",
            "q-matrix": {"r1": "5", "r2": "3", "r3": "1"},
            "q-sequence": ["y", "x", "z"],
            "q-scale": 4,
        }
        assert [section.id for section in review.sections] == ["s1", "s2"]
        assert review.test.title == "Perceiving Emotions Practice"
        assert not review.legacy

    @pytest.mark.asyncio
    async def test_uses_persisted_score(self, repository, completed_at):
        """Test the score comes from the session row, not a rescore."""
        repository.seed_session(_session_row(completed_at=completed_at, score=42))

        review = await ReviewReconstructor(repository).reconstruct("sess-1")

        assert review.score == 42
        assert review.earned_points == 3.0
        assert review.possible_points == 4.0
        assert len(review.store) == 0

    @pytest.mark.asyncio
    async def test_store_is_read_only(self, repository, completed_at):
        repository.seed_session(_session_row(completed_at=completed_at))

        review = await ReviewReconstructor(repository).reconstruct("sess-1")

        with pytest.raises(ReadOnlyResponseStore):
            review.store.set("q-single", "a")

    @pytest.mark.asyncio
    async def test_legacy_fallback(self, completed_at):
        """Test a test without sections is reviewed from the session blob."""
        repository = MemoryAssessmentRepository()
        repository.seed_test({"id": "t-old", "type": "exam", "title": "Old Exam"})
        repository.seed_session(_session_row(
            test_id="t-old",
            completed_at=completed_at,
            legacy_payload={
                "questions": [{"id": "lq1", "options": [{"id": "a", "text": "Joy", "score": 1}]}],
                "answers": {"lq1": "a"},
            },
        ))

        review = await ReviewReconstructor(repository).reconstruct("sess-1")

        assert review.legacy
        assert review.store.get("lq1") == "a"
        assert review.store.frozen
        assert review.score == 75

    @pytest.mark.asyncio
    async def test_no_content_and_no_payload(self, completed_at):
        repository = MemoryAssessmentRepository()
        repository.seed_session(_session_row(test_id="gone", completed_at=completed_at))

        with pytest.raises(ReviewUnavailable):
            await ReviewReconstructor(repository).reconstruct("sess-1")
