import logging
import uuid
from datetime import datetime
from typing import Mapping, Optional

from smartcia import schemas
from smartcia.grading import SubjectiveGrader, grade_answer
from smartcia.store import Repositories

logger = logging.getLogger(__name__)


def recompute_total(submission: schemas.Submission) -> schemas.Submission:
    """Re-derive total_score from the answers. Run after every mutation."""
    submission.total_score = sum(a.obtained_marks or 0.0 for a in submission.answers)
    return submission


def grade_submission(
    exam: schemas.Exam,
    answered: Mapping[str, str],
    student: schemas.User,
    grader: SubjectiveGrader,
    submission_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> schemas.Submission:
    """
    Grade every question of the canonical exam into an unsaved Submission.

    Questions are walked in canonical order whatever order the student saw them
    in; a missing answer is graded as an empty string. Subjective answers are
    graded one after another.
    """
    answers = []
    max_score = 0.0
    for q in exam.questions:
        raw = answered.get(q.id) or ""
        max_score += q.marks
        result = grade_answer(q, raw, grader)
        answers.append(schemas.Answer(
            question_id=q.id,
            student_answer=raw,
            obtained_marks=result.score,
            feedback=result.feedback,
            is_graded=True,
        ))

    submission = schemas.Submission(
        id=submission_id or uuid.uuid4().hex,
        exam_id=exam.id,
        student_id=student.id,
        student_name=student.name,
        answers=answers,
        max_score=max_score,
        ai_evaluated=any(q.is_subjective for q in exam.questions),
    )
    if now is not None:
        submission.submitted_at = now
    return recompute_total(submission)


def submit(
    repos: Repositories,
    exam: schemas.Exam,
    answered: Mapping[str, str],
    student: schemas.User,
    grader: SubjectiveGrader,
    submission_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> schemas.Submission:
    """Grade and persist one Submission. Nothing is stored until every answer is graded."""
    submission = grade_submission(exam, answered, student, grader, submission_id, now)
    repos.submissions.put(submission)
    log_submission(submission)
    return submission


def submit_once(
    repos: Repositories,
    exam: schemas.Exam,
    answered: Mapping[str, str],
    student: schemas.User,
    grader: SubjectiveGrader,
) -> Optional[schemas.Submission]:
    """
    Like ``submit`` but refuses a second attempt by the same student.

    Grading runs outside the store lock; the duplicate check and the write
    happen together under it. Returns None when the student already submitted.
    """
    submission = grade_submission(exam, answered, student, grader)
    with repos.lock:
        if any(s.exam_id == exam.id and s.student_id == student.id for s in repos.submissions.all()):
            return None
        repos.submissions.put(submission)
    log_submission(submission)
    return submission


def log_submission(submission: schemas.Submission) -> None:
    logger.info(
        "submission %s: %s scored %g/%g on exam %s",
        submission.id, submission.student_id, submission.total_score, submission.max_score, submission.exam_id,
    )


def revise_grade(repos: Repositories, submission_id: str, question_id: str, new_marks: float) -> bool:
    """
    Teacher override of one answer's marks.

    Returns False when the submission or the answer is missing. Marks are
    clamped into [0, question marks] when the exam can still be found, and to
    a floor of 0 otherwise.
    """
    with repos.lock:
        submission = repos.submissions.get(submission_id)
        if submission is None:
            return False
        answer = submission.answer(question_id)
        if answer is None:
            return False

        marks = max(0.0, float(new_marks))
        exam = repos.exams.get(submission.exam_id)
        question = exam.question(question_id) if exam else None
        if question is not None:
            marks = min(marks, question.marks)
        if marks != new_marks:
            logger.warning(
                "revised marks %s for question %s clamped to %g", new_marks, question_id, marks,
            )

        answer.obtained_marks = marks
        answer.is_graded = True
        recompute_total(submission)
        repos.submissions.put(submission)
    return True
