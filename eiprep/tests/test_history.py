"""
Tests for session history and the progress summary.
"""

import datetime

import pytest

from eiprep.assessments.history import (
    HistoryService,
    SessionHistoryItem,
    estimate_percentile,
    performance_band,
    summarize_progress,
)
from eiprep.assessments.memory_repository import MemoryAssessmentRepository
from eiprep.assessments.models import Branch, PracticeTestKind


def _item(score, branch=None, kind=PracticeTestKind.EXAM):
    return SessionHistoryItem(
        session_id=f"s{score}",
        test_id="t",
        title="Practice Test",
        kind=kind,
        branch=branch,
        score=score,
        completed_at=None,
        band=performance_band(score),
    )


@pytest.fixture
def history_repository(completed_at):
    repo = MemoryAssessmentRepository()
    repo.seed_test({"id": "t-perc", "type": "exam", "title": "Perceiving", "branch": "PERCEIVING"})
    repo.seed_test({"id": "t-man", "type": "worksheet", "title": "Managing", "branch": "MANAGING"})
    repo.seed_test({"id": "t-gen", "type": "exam", "title": None, "branch": None})
    day = datetime.timedelta(days=1)
    sessions = [
        ("old", "t-perc", "completed", 80, completed_at - 2 * day),
        ("new", "t-man", "completed", 55, completed_at),
        ("mid", "t-gen", "completed", 70, completed_at - day),
        ("open", "t-perc", "in_progress", None, None),
        ("theirs", "t-perc", "completed", 90, completed_at),
    ]
    for session_id, test_id, status, score, finished in sessions:
        repo.seed_session({
            "id": session_id,
            "user_id": "other" if session_id == "theirs" else "u1",
            "test_id": test_id,
            "status": status,
            "score": score,
            "completed_at": finished,
        })
    return repo


class TestPerformanceBand:
    @pytest.mark.parametrize("score, band", [
        (100, "excellent"), (75, "excellent"), (74, "passing"), (60, "passing"),
        (59, "review"), (0, "review"), (None, "review"),
    ])
    def test_thresholds(self, score, band):
        assert performance_band(score) == band


class TestSummarizeProgress:
    """Aggregate progress over completed sessions."""

    def test_empty_history(self):
        summary = summarize_progress([])

        assert summary.consensus_alignment == 0
        assert summary.branch_scores == {}
        assert summary.weakest_branch is None
        assert summary.completion_count == 0

    def test_zero_scores_ignored_in_means(self):
        """Test sessions scored 0 count as completed but not in the averages."""
        items = [_item(0, Branch.USING), _item(70, Branch.USING), _item(81, Branch.MANAGING)]

        summary = summarize_progress(items)

        assert summary.completion_count == 3
        assert summary.consensus_alignment == 76
        assert summary.branch_scores == {Branch.USING: 70, Branch.MANAGING: 81}
        assert summary.weakest_branch is Branch.USING

    def test_means_round_half_up(self):
        assert summarize_progress([_item(70), _item(71)]).consensus_alignment == 71

    @pytest.mark.parametrize("average, percentile", [(90, 95), (80, 90), (65, 80), (60, 75), (40, 40), (10, 30)])
    def test_percentile_estimate(self, average, percentile):
        assert estimate_percentile(average) == percentile


class TestHistoryService:
    @pytest.mark.asyncio
    async def test_lists_completed_sessions_newest_first(self, history_repository):
        items = await HistoryService(history_repository).list_completed("u1")

        assert [item.session_id for item in items] == ["new", "mid", "old"]
        assert items[0].title == "Managing"
        assert items[0].kind is PracticeTestKind.WORKSHEET
        assert items[0].band == "review"
        assert items[1].title == "Practice Test"
        assert items[1].branch is None

    @pytest.mark.asyncio
    async def test_filters(self, history_repository):
        service = HistoryService(history_repository)

        exams = await service.list_completed("u1", kind=PracticeTestKind.EXAM)
        perceiving = await service.list_completed("u1", branch=Branch.PERCEIVING)

        assert [item.session_id for item in exams] == ["mid", "old"]
        assert [item.session_id for item in perceiving] == ["old"]

    @pytest.mark.asyncio
    async def test_summarize(self, history_repository):
        summary = await HistoryService(history_repository).summarize("u1")

        assert summary.completion_count == 3
        assert summary.consensus_alignment == 68
        assert summary.weakest_branch is Branch.MANAGING
        assert summary.percentile == 80
