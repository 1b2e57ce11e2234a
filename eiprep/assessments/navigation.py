"""
Navigation State Machine

Controls which question of a session is visible and which moves are legal.

    LOADING -> ACTIVE(section, question) -> COMPLETED(score) -> REVIEWING(index)
    LOADING -> REVIEWING(index)            (opening an already completed session)

A live attempt is forward-only. ``advance()`` from ACTIVE requires a complete
response for the current question, hands that question to the persist hook and
then moves on; after the last question of the last section the completion hook
runs exactly once. REVIEWING moves freely in both directions and never calls
either hook.
"""

import enum
from typing import Any, Callable, List, Optional, Tuple

from eiprep.assessments.models import Question, Section
from eiprep.assessments.responses import ResponseStore
from eiprep.common.exceptions import IncompleteResponse, InvalidTransition
from eiprep.common.logger import app_logger

logger = app_logger.getChild("assessments.navigation")

PersistHook = Callable[[Question], None]
CompleteHook = Callable[[], Any]


class Phase(enum.Enum):
    """Phases of a session's navigation."""
    LOADING = "loading"
    ACTIVE = "active"
    COMPLETED = "completed"
    REVIEWING = "reviewing"


class NavigationStateMachine:
    """
    Drives a session through its sections and questions.

    Attributes:
        phase: Current phase
        section_index: Index of the visible section
        question_index: Index of the visible question within its section
        outcome: Whatever the completion hook returned, once COMPLETED
    """

    def __init__(
        self,
        sections: List[Section],
        store: ResponseStore,
        on_persist: Optional[PersistHook] = None,
        on_complete: Optional[CompleteHook] = None
    ):
        """
        Initialize the state machine in LOADING.

        Args:
            sections: Ordered sections of the test
            store: Response store checked by the completeness gate
            on_persist: Called with the question being left on each live advance
            on_complete: Called once when the last question is passed
        """
        self.sections = list(sections)
        self.store = store
        self.on_persist = on_persist
        self.on_complete = on_complete
        self.phase = Phase.LOADING
        self.section_index = 0
        self.question_index = 0
        self.outcome: Any = None
        # Flat (section, question) positions, skipping empty sections
        self._positions: List[Tuple[int, int]] = [
            (s, q) for s, section in enumerate(self.sections) for q in range(len(section.questions))
        ]

    @property
    def question_count(self) -> int:
        return len(self._positions)

    @property
    def flat_index(self) -> int:
        """Position of the current question across all sections."""
        try:
            return self._positions.index((self.section_index, self.question_index))
        except ValueError:
            return 0

    @property
    def current_section(self) -> Optional[Section]:
        if not self._positions or self.phase in (Phase.LOADING, Phase.COMPLETED):
            return None
        return self.sections[self.section_index]

    @property
    def current_question(self) -> Optional[Question]:
        """The visible question, or None while LOADING or COMPLETED."""
        section = self.current_section
        if section is None:
            return None
        return section.questions[self.question_index]

    def _move_to(self, flat_index: int) -> None:
        self.section_index, self.question_index = self._positions[flat_index]

    def activate(self) -> Phase:
        """
        Begin a live attempt at the first question.

        A test without questions completes immediately.
        """
        if self.phase is not Phase.LOADING:
            raise InvalidTransition("activate", self.phase)
        self.phase = Phase.ACTIVE
        if not self._positions:
            logger.warning("Activated a test without questions; completing immediately")
            self._complete()
        else:
            self._move_to(0)
        return self.phase

    def advance(self) -> Phase:
        """
        Move forward one question.

        ACTIVE: gated on the response store's completeness check. Persists the
        question being left, then steps to the next question, the first
        question of the next section, or completion.

        REVIEWING: steps forward; stays put on the last question.

        Returns:
            The phase after the move

        Raises:
            IncompleteResponse: If the current live question is not complete
            InvalidTransition: In LOADING or COMPLETED
        """
        if self.phase is Phase.REVIEWING:
            if self._positions:
                self._move_to(min(self.flat_index + 1, len(self._positions) - 1))
            return self.phase

        if self.phase is not Phase.ACTIVE:
            raise InvalidTransition("advance", self.phase)

        question = self.current_question
        if not self.store.is_complete(question):
            raise IncompleteResponse(question.id)

        if self.on_persist is not None:
            self.on_persist(question)

        section = self.sections[self.section_index]
        if self.question_index + 1 < len(section.questions):
            self.question_index += 1
        elif self.flat_index + 1 < len(self._positions):
            self._move_to(self.flat_index + 1)
            logger.debug(f"Entering section {self.sections[self.section_index].id}")
        else:
            self._complete()
        return self.phase

    def retreat(self) -> Phase:
        """
        Move back one question. Only legal while REVIEWING.

        Raises:
            InvalidTransition: Outside REVIEWING; live attempts are forward-only
        """
        if self.phase is not Phase.REVIEWING:
            raise InvalidTransition("retreat", self.phase)
        if self._positions:
            self._move_to(max(self.flat_index - 1, 0))
        return self.phase

    def jump_to(self, flat_index: int) -> Phase:
        """Show the question at ``flat_index``. Only legal while REVIEWING."""
        if self.phase is not Phase.REVIEWING:
            raise InvalidTransition("jump", self.phase)
        if not 0 <= flat_index < len(self._positions):
            raise IndexError(f"Invalid question index: {flat_index}")
        self._move_to(flat_index)
        return self.phase

    def enter_review(self) -> Phase:
        """
        Switch to REVIEWING at the first question.

        Legal from COMPLETED (same session) or LOADING (a reconstructed one).
        """
        if self.phase not in (Phase.COMPLETED, Phase.LOADING):
            raise InvalidTransition("review", self.phase)
        self.phase = Phase.REVIEWING
        if self._positions:
            self._move_to(0)
        return self.phase

    def _complete(self) -> None:
        self.phase = Phase.COMPLETED
        if self.on_complete is not None:
            self.outcome = self.on_complete()
