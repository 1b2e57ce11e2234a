"""
Tests for the answer key index builder.
"""

import pytest

from eiprep.assessments.answer_key import (
    AnswerKeyIndex,
    MatrixKey,
    ScaleKey,
    SequenceKey,
    SingleChoiceKey,
    UnkeyedKey,
    build_answer_key_index,
    collect_key_rows,
)
from eiprep.assessments.models import assemble_sections, build_question, iter_questions


def _index_for(*rows):
    questions = [build_question(row) for row in rows]
    return build_answer_key_index(questions, [key for row in rows for key in row["answer_keys"]])


class TestAnswerKeyIndex:
    """Index construction per question kind."""

    def test_single_choice_keeps_every_entry(self, single_choice_row):
        """Test partial-credit entries are kept, not just the best one."""
        key = _index_for(single_choice_row).get("q-single")

        assert isinstance(key, SingleChoiceKey)
        assert key.points == {"a": 1.0, "b": 0.5}
        assert key.best_option_id == "a"
        assert key.points_for("b") == 0.5
        assert key.points_for("c") == 0.0

    def test_single_choice_resolves_correct_answer_text(self, make_question, make_option):
        """Test a key row carrying the answer value instead of the option id."""
        row = make_question(
            "q", "MCQ",
            options=[make_option("o1", value="happy"), make_option("o2", value="sad", order_index=1)],
            answer_keys=[{"correct_answer": "sad", "points": 1}],
        )

        key = _index_for(row).get("q")

        assert key.points == {"o2": 1.0}

    def test_matrix_grid(self, matrix_row):
        key = _index_for(matrix_row).get("q-matrix")

        assert isinstance(key, MatrixKey)
        assert key.rows["r1"] == {"5": 0.5, "4": 0.25}
        assert key.points_for("r2", "3") == 0.25
        assert key.points_for("r2", "4") == 0.0
        assert key.max_points == 1.0

    def test_matrix_row_without_rating_is_an_issue(self, matrix_row):
        matrix_row["answer_keys"].append({"question_id": "q-matrix", "question_option_id": "r3", "points": 1})

        index = _index_for(matrix_row)

        assert any("rating" in issue for issue in index.issues)
        assert index.get("q-matrix").rows["r3"] == {"1": 0.25}

    def test_sequence_reads_correct_order_from_question(self, sequence_row):
        """Test ranked-sequence keys come from the question, not key rows."""
        key = _index_for(sequence_row).get("q-sequence")

        assert isinstance(key, SequenceKey)
        assert key.correct_order == ("x", "y", "z")

    def test_sequence_without_order_is_unkeyed(self, sequence_row):
        del sequence_row["correct_order"]

        assert isinstance(_index_for(sequence_row).get("q-sequence"), UnkeyedKey)

    def test_scale_key(self, scale_row):
        key = _index_for(scale_row).get("q-scale")

        assert isinstance(key, ScaleKey)
        assert key.correct_value == 4
        assert key.points == 1.0

    def test_scale_keeps_highest_points(self, scale_row):
        scale_row["answer_keys"].append({"question_id": "q-scale", "correct_answer": "3", "points": 0.5})

        index = _index_for(scale_row)

        assert index.get("q-scale").correct_value == 4
        assert index.issues

    def test_unkeyed_marker(self, single_choice_row):
        """Test a question without key rows gets an explicit marker."""
        single_choice_row["answer_keys"] = []

        index = _index_for(single_choice_row)

        assert "q-single" in index
        assert isinstance(index.get("q-single"), UnkeyedKey)
        assert not index.is_keyed("q-single")
        assert index.unkeyed_question_ids == ["q-single"]

    def test_unknown_question_is_absent(self, single_choice_row):
        index = _index_for(single_choice_row)

        assert index.get("nope") is None
        assert "nope" not in index

    def test_rows_for_unknown_questions_are_reported(self, single_choice_row):
        questions = [build_question(single_choice_row)]

        index = build_answer_key_index(questions, [{"question_id": "ghost", "points": 1}])

        assert index.issues == ("key row for unknown question ghost",)

    def test_overweighted_questions(self, make_question, make_option):
        row = make_question("q", "MCQ", options=[make_option("a")],
                            answer_keys=[{"question_option_id": "a", "points": 2}])

        assert _index_for(row).overweighted_question_ids() == ["q"]

    def test_every_question_has_an_entry(self, mixed_sections):
        """Test the index covers the whole test and nothing else."""
        sections = assemble_sections(mixed_sections)
        questions = list(iter_questions(sections))

        index = AnswerKeyIndex.build(questions, collect_key_rows(mixed_sections))

        assert sorted(index) == sorted(q.id for q in questions)
        assert len(index) == 4
        assert index.unkeyed_question_ids == []

    def test_build_is_pure(self, mixed_sections):
        questions = list(iter_questions(assemble_sections(mixed_sections)))
        rows = collect_key_rows(mixed_sections)

        assert build_answer_key_index(questions, rows) == build_answer_key_index(questions, rows)


class TestCollectKeyRows:
    def test_fills_question_id(self, make_question, make_option, make_section):
        question = make_question("q", "MCQ", options=[make_option("a")])
        question["answer_keys"] = [{"question_option_id": "a", "points": 1}]

        rows = collect_key_rows([make_section("s", [question])])

        assert rows == [{"question_option_id": "a", "points": 1, "question_id": "q"}]

    @pytest.mark.parametrize("questions", [None, []])
    def test_empty_sections(self, make_section, questions):
        section = make_section("s", [])
        section["questions"] = questions

        assert collect_key_rows([section]) == []
