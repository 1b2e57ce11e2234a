"""
Tests for the navigation state machine.
"""

from unittest.mock import MagicMock

import pytest

from eiprep.assessments.models import Section, assemble_sections
from eiprep.assessments.navigation import NavigationStateMachine, Phase
from eiprep.assessments.responses import ResponseStore, coerce_answer
from eiprep.common.exceptions import IncompleteResponse, InvalidTransition


@pytest.fixture
def sections(mixed_sections):
    return assemble_sections(mixed_sections)


@pytest.fixture
def store():
    return ResponseStore()


@pytest.fixture
def on_persist():
    return MagicMock()


@pytest.fixture
def on_complete():
    return MagicMock(return_value="scored")


@pytest.fixture
def machine(sections, store, on_persist, on_complete):
    nav = NavigationStateMachine(sections, store, on_persist=on_persist, on_complete=on_complete)
    nav.activate()
    return nav


def _answer_current(nav, answers):
    question = nav.current_question
    nav.store.set(question.id, coerce_answer(question, answers[question.id]))


class TestLiveAttempt:
    """Forward-only movement during an active attempt."""

    def test_starts_at_first_question(self, machine):
        assert machine.phase is Phase.ACTIVE
        assert machine.current_section.id == "s1"
        assert machine.current_question.id == "q-single"
        assert machine.question_count == 4

    def test_cannot_activate_twice(self, machine):
        with pytest.raises(InvalidTransition):
            machine.activate()

    def test_incomplete_response_blocks_advance(self, machine, on_persist):
        """Test advance without a complete answer leaves the state untouched."""
        with pytest.raises(IncompleteResponse) as exc_info:
            machine.advance()

        assert exc_info.value.question_id == "q-single"
        assert machine.current_question.id == "q-single"
        on_persist.assert_not_called()

    def test_partial_matrix_blocks_advance(self, machine, correct_answers):
        _answer_current(machine, correct_answers)
        machine.advance()
        machine.store.set_row("q-matrix", "r1", "5")
        machine.store.set_row("q-matrix", "r2", "3")

        with pytest.raises(IncompleteResponse):
            machine.advance()

        machine.store.set_row("q-matrix", "r3", "1")
        assert machine.advance() is Phase.ACTIVE
        assert machine.current_question.id == "q-sequence"

    @pytest.mark.parametrize("question_id, incomplete, complete", [
        ("q-single", "", "b"),
        ("q-matrix", {"r1": "5", "r2": "3"}, {"r1": "1", "r2": "1", "r3": "1"}),
        ("q-sequence", ["x", "y"], ["z", "x", "y"]),
        ("q-scale", 6, 1),
    ])
    def test_advance_gated_for_every_type(self, machine, correct_answers, on_persist,
                                          question_id, incomplete, complete):
        """Test each question type blocks advance until its answer has the full shape."""
        while machine.current_question.id != question_id:
            _answer_current(machine, correct_answers)
            machine.advance()
        persisted = on_persist.call_count

        machine.store.set(question_id, incomplete)
        with pytest.raises(IncompleteResponse):
            machine.advance()

        assert machine.current_question.id == question_id
        assert on_persist.call_count == persisted
        machine.store.set(question_id, complete)
        machine.advance()
        assert on_persist.call_args[0][0].id == question_id

    def test_persist_hook_called_per_advance(self, machine, correct_answers, on_persist):
        _answer_current(machine, correct_answers)

        machine.advance()

        on_persist.assert_called_once()
        assert on_persist.call_args[0][0].id == "q-single"

    def test_crosses_section_boundary(self, machine, correct_answers):
        """Test the last question of a section leads to the first of the next."""
        for _ in range(2):
            _answer_current(machine, correct_answers)
            machine.advance()

        assert machine.section_index == 1
        assert machine.question_index == 0
        assert machine.current_section.id == "s2"
        assert machine.flat_index == 2

    def test_completes_once_after_last_question(self, machine, correct_answers, on_persist, on_complete):
        for _ in range(4):
            _answer_current(machine, correct_answers)
            machine.advance()

        assert machine.phase is Phase.COMPLETED
        assert machine.outcome == "scored"
        assert machine.current_question is None
        on_complete.assert_called_once_with()
        assert [c[0][0].id for c in on_persist.call_args_list] == [
            "q-single", "q-matrix", "q-sequence", "q-scale",
        ]

        with pytest.raises(InvalidTransition):
            machine.advance()
        on_complete.assert_called_once_with()

    def test_retreat_is_rejected(self, machine, correct_answers):
        """Test a live attempt never moves backwards."""
        _answer_current(machine, correct_answers)
        machine.advance()

        with pytest.raises(InvalidTransition):
            machine.retreat()
        assert machine.current_question.id == "q-matrix"

    def test_jump_is_rejected(self, machine):
        with pytest.raises(InvalidTransition):
            machine.jump_to(2)

    def test_cannot_review_mid_attempt(self, machine):
        with pytest.raises(InvalidTransition):
            machine.enter_review()

    def test_advance_before_activate(self, sections, store):
        nav = NavigationStateMachine(sections, store)

        with pytest.raises(InvalidTransition):
            nav.advance()

    def test_empty_sections_are_skipped(self, sections, store, correct_answers):
        padded = [sections[0], Section(id="empty", test_id="t1", title="Empty", order_index=1), sections[1]]
        nav = NavigationStateMachine(padded, store)
        nav.activate()

        for _ in range(2):
            _answer_current(nav, correct_answers)
            nav.advance()

        assert nav.current_section.id == "s2"

    def test_test_without_questions_completes_immediately(self, store):
        on_complete = MagicMock(return_value=0)
        nav = NavigationStateMachine([], store, on_complete=on_complete)

        assert nav.activate() is Phase.COMPLETED
        on_complete.assert_called_once_with()


class TestReview:
    """Bidirectional, hook-free movement over a finished session."""

    @pytest.fixture
    def reviewing(self, machine, correct_answers, on_persist):
        for _ in range(4):
            _answer_current(machine, correct_answers)
            machine.advance()
        on_persist.reset_mock()
        machine.enter_review()
        return machine

    def test_review_starts_at_first_question(self, reviewing):
        assert reviewing.phase is Phase.REVIEWING
        assert reviewing.current_question.id == "q-single"

    def test_moves_both_ways_without_hooks(self, reviewing, on_persist, on_complete):
        reviewing.advance()
        reviewing.advance()
        reviewing.retreat()

        assert reviewing.current_question.id == "q-matrix"
        on_persist.assert_not_called()
        on_complete.assert_called_once_with()

    def test_review_ignores_completeness(self, sections):
        """Test an unanswered question does not block review movement."""
        nav = NavigationStateMachine(sections, ResponseStore())
        nav.enter_review()

        nav.advance()

        assert nav.current_question.id == "q-matrix"

    def test_stays_within_bounds(self, reviewing):
        reviewing.retreat()
        assert reviewing.flat_index == 0

        reviewing.jump_to(3)
        reviewing.advance()
        assert reviewing.current_question.id == "q-scale"

    def test_jump_out_of_range(self, reviewing):
        with pytest.raises(IndexError):
            reviewing.jump_to(4)

    def test_review_from_loading(self, sections, store):
        """Test a reconstructed session enters review without an attempt."""
        nav = NavigationStateMachine(sections, store)

        assert nav.enter_review() is Phase.REVIEWING
        assert nav.current_question.id == "q-single"

    def test_review_of_empty_test(self, store):
        nav = NavigationStateMachine([], store)
        nav.enter_review()

        assert nav.advance() is Phase.REVIEWING
        assert nav.retreat() is Phase.REVIEWING
        assert nav.current_question is None
