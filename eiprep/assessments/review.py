"""
Review Reconstructor

Rebuilds a completed session for read-only review: the test content, the
answer key index and a frozen response store replayed from the persisted
response rows. The score shown is the one persisted at completion; it is
never recomputed here.

Tests without structured sections fall back to the legacy adapter, which
synthesises the same shapes from the blob stored on the session row.
"""

from dataclasses import dataclass
from typing import List, Optional

from eiprep.assessments.answer_key import AnswerKeyIndex, build_answer_key_index, collect_key_rows
from eiprep.assessments.legacy import LegacySessionAdapter, has_legacy_payload
from eiprep.assessments.models import PracticeTest, Section, Session, assemble_sections, iter_questions
from eiprep.assessments.repository import AssessmentRepository
from eiprep.assessments.responses import ResponseStore, hydrate_response_store
from eiprep.common.exceptions import NotFoundError, ReviewUnavailable
from eiprep.common.logger import app_logger, log_execution_time

logger = app_logger.getChild("assessments.review")


@dataclass(frozen=True)
class ReviewResult:
    """
    Everything the review screens need for one completed session.

    Attributes:
        session: The session row
        test: The test, if its row still exists
        sections: Ordered sections (one synthesised section for legacy sessions)
        store: Frozen response store
        index: Answer key index, for showing consensus points per option
        score: Percentage persisted on the session
        legacy: Whether the view came from the legacy blob
    """
    session: Session
    test: Optional[PracticeTest]
    sections: List[Section]
    store: ResponseStore
    index: AnswerKeyIndex
    score: Optional[int]
    legacy: bool = False

    @property
    def earned_points(self) -> Optional[float]:
        return self.session.earned_points

    @property
    def possible_points(self) -> Optional[float]:
        return self.session.possible_points


class ReviewReconstructor:
    """Reconstructs completed sessions from the persistence collaborator."""

    def __init__(self, repository: AssessmentRepository):
        self.repository = repository

    @log_execution_time(logger)
    async def reconstruct(self, session_id: str) -> ReviewResult:
        """
        Reconstruct a completed session.

        Args:
            session_id: The session to review

        Returns:
            ReviewResult with a frozen response store

        Raises:
            NotFoundError: If the session does not exist
            ReviewUnavailable: If the session is not completed, or has neither
                structured content nor a legacy payload
            MalformedQuestion: If stored content violates the question schema
            PersistenceUnavailable: If any read fails
        """
        row = await self.repository.get_session(session_id)
        if row is None:
            raise NotFoundError("Session", session_id)
        session = Session.from_row(row)
        if not session.is_completed:
            raise ReviewUnavailable(session_id, f"status is {session.status.value}")

        test_row = await self.repository.get_test(session.test_id)
        test = PracticeTest.from_row(test_row) if test_row else None
        raw_sections = await self.repository.list_sections(session.test_id)

        if not raw_sections:
            return self._reconstruct_legacy(session, test)

        sections = assemble_sections(raw_sections)
        questions = list(iter_questions(sections))
        index = build_answer_key_index(questions, collect_key_rows(raw_sections))
        rows = await self.repository.list_responses(session_id)
        store = hydrate_response_store(questions, rows).freeze()

        logger.info(
            f"Reconstructed session {session_id}: {len(store)}/{len(questions)} answered",
            extra={"data": {"session_id": session_id, "test_id": session.test_id}}
        )
        return ReviewResult(
            session=session,
            test=test,
            sections=sections,
            store=store,
            index=index,
            score=session.score,
        )

    def _reconstruct_legacy(self, session: Session, test: Optional[PracticeTest]) -> ReviewResult:
        if not has_legacy_payload(session.legacy_payload):
            raise ReviewUnavailable(session.id, "test has no sections and session has no legacy payload")
        view = LegacySessionAdapter(session.test_id, session.id).adapt(session.legacy_payload)
        return ReviewResult(
            session=session,
            test=test,
            sections=view.sections,
            store=view.store.freeze(),
            index=view.index,
            score=session.score,
            legacy=True,
        )
