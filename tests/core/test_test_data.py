"""
Tests for the execution test data document.
"""
import json
from types import SimpleNamespace

import pytest

from examhub.core.answer_matching import MarkupAnswer, PlainAnswer
from examhub.core.errors import NotFoundError, TestDataCorruptedError
from examhub.core.test_data import (
    SubmittedResponse,
    TestDataDocument,
    calculate_score_percentage,
)


def _question(qid, correct_answer=None, correct_answer_plain=None, is_markup=False):
    return SimpleNamespace(
        id=qid,
        subtopic_id=10,
        question_text=f"Question {qid}",
        options=None,
        difficulty_level=1,
        correct_answer=correct_answer,
        correct_answer_plain=correct_answer_plain,
        is_markup=is_markup,
    )


@pytest.fixture
def document():
    return TestDataDocument.from_questions(
        [
            _question(1, correct_answer_plain="4"),
            _question(2, correct_answer="\\frac{1}{2}", correct_answer_plain="1/2", is_markup=True),
            _question(3, correct_answer_plain="B"),
            _question(4, correct_answer="0.25"),
        ],
        total_time_allowed=30,
    )


class TestCalculateScorePercentage:
    @pytest.mark.parametrize(
        "correct, total, expected",
        [(3, 4, 75), (0, 4, 0), (4, 4, 100), (1, 3, 33), (2, 3, 67), (1, 8, 13), (0, 0, 0)],
    )
    def test_rounding(self, correct, total, expected):
        assert calculate_score_percentage(correct, total) == expected


class TestConstruction:
    def test_one_empty_slot_per_question(self, document):
        assert document.total_questions == 4
        assert [r.question_id for r in document.responses] == [1, 2, 3, 4]
        assert all(r.student_answer is None for r in document.responses)
        assert all(r.is_correct is None for r in document.responses)
        assert document.timing.total_time_allowed == 30

    def test_snapshot_exposes_tagged_correct_answer(self, document):
        assert document.question(1).correct == PlainAnswer("4")
        assert document.question(2).correct == MarkupAnswer("\\frac{1}{2}")
        assert document.question(4).correct == MarkupAnswer("0.25")


class TestParse:
    def test_serialized_document_parses_back(self, document):
        document.record_answer(1, "4", 12.5)

        parsed = TestDataDocument.parse(document.dumps(), execution_id=7)

        assert parsed.response(1).student_answer == "4"
        assert parsed.response(1).is_correct is True
        assert parsed.response(1).time_spent == 12.5

    def test_legacy_is_katex_flag_is_accepted(self):
        raw = json.dumps(
            {
                "questions": [
                    {
                        "question_id": 5,
                        "question_text": "Simplify",
                        "correct_answer": "x^2",
                        "correct_answer_plain": "x squared",
                        "is_katex": True,
                    }
                ],
                "responses": [{"question_id": 5, "student_answer": None}],
            }
        )

        parsed = TestDataDocument.parse(raw, execution_id=1)

        assert parsed.question(5).is_markup is True
        assert parsed.question(5).correct == MarkupAnswer("x^2")

    @pytest.mark.parametrize("raw", ["", None, "not json", "[]", '{"questions": "x"}'])
    def test_malformed_document_is_corrupted(self, raw):
        with pytest.raises(TestDataCorruptedError) as exc_info:
            TestDataDocument.parse(raw, execution_id=42)

        assert exc_info.value.execution_id == 42

    def test_misaligned_responses_are_corrupted(self):
        raw = json.dumps(
            {
                "questions": [
                    {"question_id": 1, "question_text": "a", "correct_answer_plain": "1"},
                    {"question_id": 2, "question_text": "b", "correct_answer_plain": "2"},
                ],
                "responses": [{"question_id": 2}, {"question_id": 1}],
            }
        )

        with pytest.raises(TestDataCorruptedError):
            TestDataDocument.parse(raw, execution_id=3)

    def test_missing_response_is_corrupted(self):
        raw = json.dumps(
            {
                "questions": [
                    {"question_id": 1, "question_text": "a", "correct_answer_plain": "1"}
                ],
                "responses": [],
            }
        )

        with pytest.raises(TestDataCorruptedError):
            TestDataDocument.parse(raw, execution_id=3)


class TestRecordAnswer:
    def test_grades_and_stores(self, document):
        slot = document.record_answer(3, " b ", 4)

        assert slot.is_correct is True
        assert document.response(3).student_answer == " b "
        assert document.response(3).time_spent == 4

    def test_resubmission_overwrites(self, document):
        document.record_answer(3, "A", 4)
        document.record_answer(3, "B", 9)

        assert document.response(3).student_answer == "B"
        assert document.response(3).is_correct is True
        assert document.response(3).time_spent == 9

    def test_unknown_question(self, document):
        with pytest.raises(NotFoundError, match="99"):
            document.record_answer(99, "x", 1)

    def test_alignment_is_preserved(self, document):
        document.record_answer(4, "0.25", 1)
        document.record_answer(1, "5", 1)

        assert [r.question_id for r in document.responses] == [
            q.question_id for q in document.questions
        ]


class TestMergeAndRegrade:
    def test_merge_keeps_unmentioned_slots(self, document):
        document.record_answer(1, "4", 3)

        unknown = document.merge_submissions(
            [
                SubmittedResponse(questionId=2, answer="\\frac{1}{2}", timeTaken=5),
                SubmittedResponse(questionId=3, answer="C", timeTaken=6),
            ]
        )

        assert unknown == []
        assert document.response(1).student_answer == "4"
        assert document.response(2).is_correct is True
        assert document.response(3).is_correct is False
        assert document.response(4).student_answer is None

    def test_merge_reports_unknown_questions(self, document):
        unknown = document.merge_submissions(
            [SubmittedResponse(questionId=77, answer="x", timeTaken=1)]
        )

        assert unknown == [77]

    def test_regrade_counts_correct_and_marks_unanswered_incorrect(self, document):
        document.record_answer(1, "4", 1)
        document.record_answer(2, "\\frac{1}{2}", 1)
        document.record_answer(3, "C", 1)

        correct = document.regrade()

        assert correct == 2
        assert [r.is_correct for r in document.responses] == [True, True, False, False]

    def test_regrade_is_idempotent(self, document):
        document.record_answer(1, "4", 1)
        document.record_answer(3, "B", 1)

        first = document.regrade()
        first_dump = document.dumps()
        second = document.regrade()

        assert first == second == 2
        assert document.dumps() == first_dump

    def test_all_answered(self, document):
        assert document.all_answered() is False
        for qid, answer in [(1, "4"), (2, "x"), (3, "B"), (4, "1")]:
            document.record_answer(qid, answer, 1)
        assert document.all_answered() is True


class TestSubmittedResponse:
    def test_accepts_camel_and_snake_case(self):
        camel = SubmittedResponse.model_validate(
            {"questionId": 3, "answer": "B", "timeTaken": 2.5}
        )
        snake = SubmittedResponse.model_validate(
            {"question_id": 3, "answer": "B", "time_taken": 2.5}
        )

        assert camel == snake

    @pytest.mark.parametrize(
        "entry",
        [
            {"answer": "B", "timeTaken": 1},
            {"questionId": 0, "answer": "B", "timeTaken": 1},
            {"questionId": 3, "answer": "", "timeTaken": 1},
            {"questionId": 3, "answer": "   ", "timeTaken": 1},
            {"questionId": 3, "timeTaken": 1},
            {"questionId": 3, "answer": "B"},
            {"questionId": 3, "answer": "B", "timeTaken": "12"},
            {"questionId": 3, "answer": "B", "timeTaken": True},
        ],
    )
    def test_rejects_invalid_entries(self, entry):
        with pytest.raises(Exception):
            SubmittedResponse.model_validate(entry)
