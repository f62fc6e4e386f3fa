import logging
import math
from typing import Any, Callable, Mapping

from smartcia import schemas

logger = logging.getLogger(__name__)

# (question_text, max_marks, reference, student_answer) -> {"score": ..., "feedback": ...}
SubjectiveGrader = Callable[[str, float, str, str], Mapping[str, Any]]

CORRECT = "Correct"
INCORRECT = "Incorrect"
NO_ANSWER = "No answer provided"
DEFAULT_REFERENCE = "Grade based on relevance and correctness"


def clamp_score(score: float, max_marks: float) -> float:
    return max(0.0, min(float(max_marks), float(score)))


def grade_mcq(question: schemas.Question, raw_answer: str) -> schemas.GradingResult:
    """
    Compare against the option *text* at the canonical correct index.
    Displayed option order may differ from the stored one, so indices are never compared.
    """
    if raw_answer == question.correct_option_text:
        return schemas.GradingResult(score=question.marks, feedback=CORRECT)
    return schemas.GradingResult(score=0.0, feedback=INCORRECT)


def _parse_grader_result(data: Mapping[str, Any], max_marks: float) -> schemas.GradingResult:
    score = float(data["score"])
    if not math.isfinite(score):
        raise ValueError(f"non-finite score {data['score']!r}")
    return schemas.GradingResult(score=clamp_score(score, max_marks), feedback=str(data["feedback"]))


def grade_subjective(question: schemas.Question, raw_answer: str, grader: SubjectiveGrader) -> schemas.GradingResult:
    """
    Delegate to the external grader.
    Blank answers score 0 without a call. Any failure scores 0 with a note asking
    for manual grading; nothing is raised to the caller.
    """
    if not raw_answer or not raw_answer.strip():
        return schemas.GradingResult(score=0.0, feedback=NO_ANSWER)

    reference = question.rubric or question.sample_answer or DEFAULT_REFERENCE
    try:
        data = grader(question.text, question.marks, reference, raw_answer)
        return _parse_grader_result(data, question.marks)
    except Exception as e:
        logger.error("AI evaluation failed for question %s: %s", question.id, e)
        reason = str(e) or "Unknown error"
        return schemas.GradingResult(score=0.0, feedback=f"AI Grading Error: {reason}. Please grade manually.")


def grade_answer(question: schemas.Question, raw_answer: str, grader: SubjectiveGrader) -> schemas.GradingResult:
    if question.type == schemas.QuestionType.MCQ:
        return grade_mcq(question, raw_answer)
    return grade_subjective(question, raw_answer, grader)
