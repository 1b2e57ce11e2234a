"""
Session History

Read-side view of a user's completed sessions and the progress summary shown
on the dashboard. Nothing here writes.
"""

import datetime
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from eiprep.assessments.models import Branch, PracticeTestKind, SessionStatus
from eiprep.assessments.repository import AssessmentRepository
from eiprep.common.logger import app_logger

logger = app_logger.getChild("assessments.history")

EXCELLENT_THRESHOLD = 75
PASSING_THRESHOLD = 60
DEFAULT_TEST_TITLE = "Practice Test"


def performance_band(score: Optional[int]) -> str:
    """``excellent`` at 75 and above, ``passing`` at 60 and above, else ``review``."""
    score = score or 0
    if score >= EXCELLENT_THRESHOLD:
        return "excellent"
    if score >= PASSING_THRESHOLD:
        return "passing"
    return "review"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _mean(values: Sequence[float]) -> int:
    return _round_half_up(sum(values) / len(values))


@dataclass(frozen=True)
class SessionHistoryItem:
    """One completed session as listed in the history view."""
    session_id: str
    test_id: str
    title: str
    kind: PracticeTestKind
    branch: Optional[Branch]
    score: int
    completed_at: Optional[datetime.datetime]
    band: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'SessionHistoryItem':
        test = row.get("test") or {}
        try:
            kind = PracticeTestKind(test.get("type") or PracticeTestKind.EXAM.value)
        except ValueError:
            kind = PracticeTestKind.EXAM
        score = row.get("score") or 0
        return cls(
            session_id=str(row["id"]),
            test_id=str(row.get("test_id") or ""),
            title=test.get("title") or DEFAULT_TEST_TITLE,
            kind=kind,
            branch=Branch.parse(test.get("branch")),
            score=score,
            completed_at=row.get("completed_at"),
            band=performance_band(score),
        )


@dataclass(frozen=True)
class ProgressSummary:
    """
    Aggregate progress over a user's completed sessions.

    Attributes:
        consensus_alignment: Mean of the non-zero scores
        branch_scores: Mean non-zero score per branch with data
        weakest_branch: Branch with the lowest mean, if any has data
        completion_count: Number of completed sessions
        percentile: Rough standing estimated from consensus_alignment
    """
    consensus_alignment: int = 0
    branch_scores: Dict[Branch, int] = field(default_factory=dict)
    weakest_branch: Optional[Branch] = None
    completion_count: int = 0
    percentile: int = 0


def estimate_percentile(average: int) -> int:
    """Heuristic standing; there is no population data behind it."""
    if average >= 80:
        return min(95, average + 10)
    if average >= 60:
        return min(80, average + 15)
    return max(30, average)


def summarize_progress(items: Sequence[SessionHistoryItem]) -> ProgressSummary:
    """Aggregate history items into a ProgressSummary. Zero scores are ignored in means."""
    scores = [item.score for item in items if item.score > 0]
    average = _mean(scores) if scores else 0

    per_branch: Dict[Branch, List[int]] = {}
    for item in items:
        if item.score > 0 and item.branch is not None:
            per_branch.setdefault(item.branch, []).append(item.score)
    branch_scores = {branch: _mean(values) for branch, values in per_branch.items()}
    weakest = min(branch_scores, key=lambda branch: branch_scores[branch]) if branch_scores else None

    return ProgressSummary(
        consensus_alignment=average,
        branch_scores=branch_scores,
        weakest_branch=weakest,
        completion_count=len(items),
        percentile=estimate_percentile(average),
    )


class HistoryService:
    """Lists completed sessions and summarises progress for a user."""

    def __init__(self, repository: AssessmentRepository):
        self.repository = repository

    async def list_completed(
        self,
        user_id: str,
        kind: Optional[PracticeTestKind] = None,
        branch: Optional[Branch] = None
    ) -> List[SessionHistoryItem]:
        """
        Completed sessions of a user, newest first.

        Args:
            user_id: Owning user
            kind: Only sessions on tests of this kind
            branch: Only sessions on tests tagged with this branch

        Raises:
            PersistenceUnavailable: If the sessions cannot be read
        """
        rows = await self.repository.list_sessions(user_id, status=SessionStatus.COMPLETED.value)
        items = [SessionHistoryItem.from_row(row) for row in rows]
        if kind is not None:
            items = [item for item in items if item.kind is kind]
        if branch is not None:
            items = [item for item in items if item.branch is branch]
        logger.debug(f"Listed {len(items)} completed sessions for user {user_id}")
        return items

    async def summarize(self, user_id: str) -> ProgressSummary:
        """Progress summary over every completed session of a user."""
        return summarize_progress(await self.list_completed(user_id))
