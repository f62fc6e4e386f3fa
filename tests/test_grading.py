"""
Tests for the grading oracle: MCQ exact match and the delegated subjective path.
"""

import pytest

from smartcia import schemas
from smartcia.grading import (
    CORRECT,
    DEFAULT_REFERENCE,
    INCORRECT,
    NO_ANSWER,
    clamp_score,
    grade_answer,
)
from smartcia.llm import LLMError


class TestMcq:
    def test_correct_option_text_gets_full_marks(self, mcq_question, grader):
        result = grade_answer(mcq_question, "B", grader)
        assert result.score == 5
        assert result.feedback == CORRECT

    def test_wrong_option_scores_zero(self, mcq_question, grader):
        result = grade_answer(mcq_question, "A", grader)
        assert result.score == 0
        assert result.feedback == INCORRECT

    def test_index_is_not_accepted_as_answer(self, mcq_question, grader):
        """Only the option text counts; "1" is not option B."""
        assert grade_answer(mcq_question, "1", grader).score == 0

    def test_empty_answer_is_incorrect(self, mcq_question, grader):
        assert grade_answer(mcq_question, "", grader).feedback == INCORRECT

    def test_mcq_never_calls_grader(self, mcq_question, grader):
        grade_answer(mcq_question, "B", grader)
        assert grader.calls == []


class TestSubjective:
    @pytest.mark.parametrize("blank", ["", "   ", "\n\t"])
    def test_blank_answer_short_circuits(self, short_question, grader, blank):
        result = grade_answer(short_question, blank, grader)
        assert result.score == 0
        assert result.feedback == NO_ANSWER
        assert len(grader.calls) == 0

    def test_delegates_with_rubric(self, short_question, grader):
        result = grade_answer(short_question, "irrelevant text", grader)
        assert result.score == 2
        assert result.feedback == "Partially correct"
        assert grader.calls == [("Explain EDA", 5, "Mentions summarising data characteristics", "irrelevant text")]

    def test_falls_back_to_sample_answer_then_default(self, make_grader):
        grader = make_grader()
        q = schemas.Question(id="q", text="Why?", type=schemas.QuestionType.LONG_ANSWER, marks=10,
                             sample_answer="Because.")
        grade_answer(q, "some answer", grader)
        q2 = schemas.Question(id="q2", text="How?", type=schemas.QuestionType.LONG_ANSWER, marks=10)
        grade_answer(q2, "some answer", grader)
        assert grader.calls[0][2] == "Because."
        assert grader.calls[1][2] == DEFAULT_REFERENCE

    @pytest.mark.parametrize("raw, expected", [(9, 5), (-3, 0), (3.5, 3.5), ("4", 4)])
    def test_score_is_clamped(self, short_question, make_grader, raw, expected):
        result = grade_answer(short_question, "answer", make_grader(score=raw))
        assert result.score == expected
        assert 0 <= result.score <= short_question.marks

    def test_grader_failure_scores_zero(self, short_question, make_grader):
        grader = make_grader(error=LLMError("Gemini did not respond within 8s"))
        result = grade_answer(short_question, "answer", grader)
        assert result.score == 0
        assert result.feedback.startswith("AI Grading Error")
        assert "grade manually" in result.feedback
        assert len(grader.calls) == 1

    def test_any_exception_is_contained(self, short_question, make_grader):
        result = grade_answer(short_question, "answer", make_grader(error=ConnectionError("boom")))
        assert result.score == 0
        assert "boom" in result.feedback

    @pytest.mark.parametrize("bad", [{"feedback": "no score"}, {"score": "lots", "feedback": "x"},
                                     {"score": float("nan"), "feedback": "x"}, {"score": 3}])
    def test_malformed_result_scores_zero(self, short_question, bad):
        result = grade_answer(short_question, "answer", lambda *args: bad)
        assert result.score == 0
        assert result.feedback.startswith("AI Grading Error")


def test_clamp_score():
    assert clamp_score(7, 5) == 5
    assert clamp_score(-1, 5) == 0
    assert clamp_score(2.5, 5) == 2.5
