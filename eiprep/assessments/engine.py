"""
Assessment Session Engine

The facade the interactive application talks to. It loads a test, drives the
navigation state machine, records answers in the response store, hands
persistence writes to the detached write queue and scores the session once on
completion.

Typical use:

    engine = AssessmentEngine(repository, user_id)
    await engine.start(test_id)
    while engine.phase is Phase.ACTIVE:
        engine.answer(engine.current_question().id, value)
        engine.advance()
    result = engine.result()
    await engine.close()

Load failures (missing test, malformed content, unreachable store) propagate
out of ``start``. Write failures after that never reach the caller; they are
published as PersistenceFailureEvent on the engine's dispatcher.
"""

import datetime
import uuid
from typing import Any, List, Optional, Tuple

from eiprep.assessments.answer_key import AnswerKeyIndex, build_answer_key_index, collect_key_rows
from eiprep.assessments.models import (
    MatrixRatingQuestion,
    PracticeTest,
    Question,
    Section,
    Session,
    SessionStatus,
    assemble_sections,
    iter_questions,
)
from eiprep.assessments.navigation import NavigationStateMachine, Phase
from eiprep.assessments.repository import AssessmentRepository
from eiprep.assessments.responses import ResponseStore, coerce_answer, encode_response
from eiprep.assessments.review import ReviewReconstructor, ReviewResult
from eiprep.assessments.scoring import ScoreResult, ScoringEngine
from eiprep.common.events import EventDispatcher, SessionCompletedEvent, UnkeyedQuestionEvent
from eiprep.common.exceptions import InvalidAnswer, InvalidTransition, NotFoundError
from eiprep.common.logger import LoggerAdapter, app_logger
from eiprep.common.write_queue import AsyncWriteQueue
from eiprep.config import Settings, get_settings

logger = app_logger.getChild("assessments.engine")

REFLECTION_MIN = 1
REFLECTION_MAX = 5


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class AssessmentEngine:
    """
    One user's run through one test, or the review of a completed one.

    Attributes:
        repository: Persistence collaborator
        user_id: Owning user
        dispatcher: Channel for completion, authoring and failure events
        write_queue: Detached queue all writes after start go through
        session: The session, once started or opened
        test: The test being taken
        sections: Ordered sections of the test
        index: Answer key index of the test
        store: Working set of answers
    """

    def __init__(
        self,
        repository: AssessmentRepository,
        user_id: str,
        settings: Optional[Settings] = None,
        dispatcher: Optional[EventDispatcher] = None,
        write_queue: Optional[AsyncWriteQueue] = None
    ):
        self.repository = repository
        self.user_id = user_id
        self.settings = settings or get_settings()
        self.dispatcher = dispatcher or EventDispatcher()
        self.write_queue = write_queue or AsyncWriteQueue(self.dispatcher, self.settings.WRITE_QUEUE_MAX_SIZE)
        self.scoring = ScoringEngine(self.settings.SCORE_CAP_PER_QUESTION)

        self.session: Optional[Session] = None
        self.test: Optional[PracticeTest] = None
        self.sections: List[Section] = []
        self.index: Optional[AnswerKeyIndex] = None
        self.store = ResponseStore()
        self.navigation: Optional[NavigationStateMachine] = None
        self._result: Optional[ScoreResult] = None
        self._review: Optional[ReviewResult] = None
        self.log = LoggerAdapter(logger, {"user_id": user_id})

    @property
    def phase(self) -> Phase:
        return self.navigation.phase if self.navigation else Phase.LOADING

    @property
    def progress(self) -> Tuple[int, int]:
        """(1-based position of the current question, number of questions)."""
        if self.navigation is None or self.navigation.current_question is None:
            return 0, self.navigation.question_count if self.navigation else 0
        return self.navigation.flat_index + 1, self.navigation.question_count

    async def start(self, test_id: str) -> Session:
        """
        Load a test and open a new session on it.

        Args:
            test_id: The test to take

        Returns:
            The new in-progress session

        Raises:
            InvalidTransition: If this engine already has a session
            NotFoundError: If the test does not exist
            MalformedQuestion: If the test content violates the question schema
            PersistenceUnavailable: If loading or creating the session fails
        """
        if self.navigation is not None:
            raise InvalidTransition("start", self.phase)

        test_row = await self.repository.get_test(test_id)
        if test_row is None:
            raise NotFoundError("PracticeTest", test_id)
        raw_sections = await self.repository.list_sections(test_id)

        self.test = PracticeTest.from_row(test_row)
        self.sections = assemble_sections(raw_sections)
        questions = list(iter_questions(self.sections))
        self.index = build_answer_key_index(questions, collect_key_rows(raw_sections))
        self.log = self.log.with_context(test_id=test_id)
        self._report_key_problems()

        row = await self.repository.insert_session({
            "id": str(uuid.uuid4()),
            "user_id": self.user_id,
            "test_id": test_id,
            "status": SessionStatus.IN_PROGRESS.value,
            "started_at": _utcnow(),
        })
        self.session = Session.from_row(row)
        self.log = self.log.with_context(session_id=self.session.id)
        self.log.info(
            f"Started session on {self.test.title!r}: {len(self.sections)} sections, {len(questions)} questions"
        )

        self.navigation = NavigationStateMachine(
            self.sections,
            self.store,
            on_persist=self._persist_response,
            on_complete=self._complete
        )
        self.navigation.activate()
        return self.session

    def _report_key_problems(self) -> None:
        # Authoring problems are logged and published, never shown mid-session
        for issue in self.index.issues:
            self.log.warning(f"Answer key issue: {issue}")
        for question_id in self.index.unkeyed_question_ids:
            self.log.warning(f"Question {question_id} has no answer key and can never earn points")
            self.dispatcher.dispatch(UnkeyedQuestionEvent(self.test.id, question_id))
        if self.settings.SCORE_CAP_PER_QUESTION:
            for question_id in self.index.overweighted_question_ids():
                self.log.warning(f"Answer key of question {question_id} exceeds 1 point; contribution is capped")

    def current_question(self) -> Optional[Question]:
        """The visible question, or None when there is none."""
        return self.navigation.current_question if self.navigation else None

    def _require_current(self, question_id: str, operation: str) -> Question:
        if self.phase is not Phase.ACTIVE:
            raise InvalidTransition(operation, self.phase)
        question = self.navigation.current_question
        if question.id != question_id:
            raise InvalidAnswer(question_id, f"current question is {question.id}")
        return question

    def answer(self, question_id: str, value: Any) -> None:
        """
        Record the answer to the current question, replacing any earlier one.

        Raises:
            InvalidTransition: Outside a live attempt
            InvalidAnswer: For another question, or a value of the wrong shape
        """
        question = self._require_current(question_id, "answer")
        self.store.set(question.id, coerce_answer(question, value))
        self.log.debug(f"Answered {question.id}")

    def answer_row(self, question_id: str, row_id: str, rating: Any) -> None:
        """
        Rate one row of the current matrix-rating question.

        Raises:
            InvalidTransition: Outside a live attempt
            InvalidAnswer: If the question is not a matrix or has no such row
        """
        question = self._require_current(question_id, "answer")
        if not isinstance(question, MatrixRatingQuestion):
            raise InvalidAnswer(question_id, "rows can only be rated on matrix-rating questions")
        if question.option(row_id) is None:
            raise InvalidAnswer(question_id, f"unknown row {row_id}")
        self.store.set_row(question.id, row_id, str(rating))

    def advance(self) -> Phase:
        """
        Move forward one question.

        In a live attempt the answer being left is queued for persistence and
        this call returns without waiting for it; after the last question the
        session is scored. Must be called from within the running event loop.

        Raises:
            IncompleteResponse: If the current question's answer is incomplete
            InvalidTransition: In LOADING or COMPLETED
        """
        if self.navigation is None:
            raise InvalidTransition("advance", Phase.LOADING)
        return self.navigation.advance()

    def retreat(self) -> Phase:
        """
        Move back one question. Only possible while reviewing.

        Raises:
            InvalidTransition: Outside REVIEWING
        """
        if self.navigation is None:
            raise InvalidTransition("retreat", Phase.LOADING)
        return self.navigation.retreat()

    def _persist_response(self, question: Question) -> None:
        rows = encode_response(self.session.id, question, self.store.get(question.id))
        self.write_queue.submit(
            "insert_responses",
            lambda: self.repository.insert_responses(rows),
            description=f"question {question.id}",
            session_id=self.session.id
        )

    def _complete(self) -> ScoreResult:
        result = self.scoring.score(self.sections, self.store, self.index)
        self._result = result

        session = self.session
        session.status = SessionStatus.COMPLETED
        session.completed_at = _utcnow()
        session.score = result.percentage
        session.earned_points = result.earned_points
        session.possible_points = result.possible_points
        changes = {
            "status": session.status.value,
            "completed_at": session.completed_at,
            "score": session.score,
            "earned_points": session.earned_points,
            "possible_points": session.possible_points,
        }
        self.write_queue.submit(
            "update_session",
            lambda: self.repository.update_session(session.id, changes),
            description="completion",
            session_id=session.id
        )

        self.log.info(
            f"Completed session: {result.earned_points}/{result.possible_points} ({result.percentage}%)"
        )
        self.dispatcher.dispatch(SessionCompletedEvent(
            session.id, session.user_id, session.test_id,
            result.percentage, result.earned_points, result.possible_points
        ))
        return result

    def result(self) -> ScoreResult:
        """
        The score of the session.

        Raises:
            InvalidTransition: Before the session is completed
        """
        if self._result is None:
            raise InvalidTransition("read the result", self.phase)
        return self._result

    def review(self) -> ReviewResult:
        """
        Enter review of the session just completed. The response store
        becomes read-only.

        Raises:
            InvalidTransition: Unless COMPLETED
        """
        if self.phase is not Phase.COMPLETED:
            raise InvalidTransition("review", self.phase)
        self.store.freeze()
        self.navigation.enter_review()
        self._review = ReviewResult(
            session=self.session,
            test=self.test,
            sections=self.sections,
            store=self.store,
            index=self.index,
            score=self.session.score,
        )
        return self._review

    @property
    def review_result(self) -> Optional[ReviewResult]:
        return self._review

    @classmethod
    async def open_review(
        cls,
        repository: AssessmentRepository,
        session_id: str,
        settings: Optional[Settings] = None,
        dispatcher: Optional[EventDispatcher] = None
    ) -> 'AssessmentEngine':
        """
        Open an already completed session directly in REVIEWING.

        The score comes from the session row; nothing is rescored.

        Raises:
            NotFoundError: If the session does not exist
            ReviewUnavailable: If the session cannot be reviewed
        """
        review = await ReviewReconstructor(repository).reconstruct(session_id)
        engine = cls(repository, review.session.user_id, settings, dispatcher)
        engine._load_review(review)
        return engine

    def _load_review(self, review: ReviewResult) -> None:
        session = review.session
        self.session = session
        self.test = review.test
        self.sections = review.sections
        self.index = review.index
        self.store = review.store
        self._review = review
        self._result = ScoreResult(
            percentage=session.score or 0,
            earned_points=session.earned_points or 0.0,
            possible_points=session.possible_points or 0.0,
        )
        self.log = self.log.with_context(session_id=session.id, test_id=session.test_id)
        self.navigation = NavigationStateMachine(self.sections, self.store)
        self.navigation.enter_review()
        self.log.info("Opened session for review" + (" (legacy)" if review.legacy else ""))

    def record_reflection(self, value: int) -> None:
        """
        Record the user's post-assessment confidence rating (1-5).

        The write is queued like every other write after start.

        Raises:
            InvalidTransition: Before the session is completed
            ValueError: If the rating is out of range
        """
        if self.session is None or not self.session.is_completed:
            raise InvalidTransition("record a reflection", self.phase)
        if isinstance(value, bool) or not isinstance(value, int) or not REFLECTION_MIN <= value <= REFLECTION_MAX:
            raise ValueError(f"Reflection must be an integer {REFLECTION_MIN}-{REFLECTION_MAX}, got {value!r}")

        session = self.session
        session.reflection_score = value
        self.write_queue.submit(
            "update_session",
            lambda: self.repository.update_session(session.id, {"reflection_score": value}),
            description="reflection",
            session_id=session.id
        )

    async def drain(self) -> None:
        """Wait for every queued write to finish."""
        await self.write_queue.drain()

    async def close(self) -> None:
        """Finish queued writes and stop the write worker."""
        await self.write_queue.close()
