import uuid
from typing import List, Optional

from smartcia import schemas
from smartcia.feedback import feedback_for_exam, unresolved_count
from smartcia.store import Repositories


def save_exam(repos: Repositories, exam: schemas.Exam) -> schemas.Exam:
    repos.exams.put(exam)
    return exam


def get_exam(repos: Repositories, exam_id: str) -> Optional[schemas.Exam]:
    return repos.exams.get(exam_id)


def list_exams(repos: Repositories, published_only: bool = False) -> List[schemas.Exam]:
    exams = repos.exams.all()
    if published_only:
        exams = [e for e in exams if e.is_published]
    return exams


def create_exam(repos: Repositories, payload: schemas.ExamCreate, author: schemas.User) -> schemas.Exam:
    """
    Build and store an exam from an authoring payload.
    Questions without an id get a fresh one; new exams are published immediately.
    """
    if not payload.title.strip() or not payload.subject.strip() or not payload.questions:
        raise ValueError("Please fill in exam details and add at least one question.")

    questions = [
        schemas.Question(**{**q.model_dump(), "id": q.id or uuid.uuid4().hex})
        for q in payload.questions
    ]
    seen = set()
    for q in questions:
        if q.id in seen:
            raise ValueError(f"Duplicate question id: {q.id}")
        seen.add(q.id)
    exam = schemas.Exam(
        id=uuid.uuid4().hex,
        title=payload.title,
        subject=payload.subject,
        duration_minutes=payload.duration_minutes,
        questions=questions,
        created_by=author.id,
        is_published=True,
    )
    return save_exam(repos, exam)


def get_submission(repos: Repositories, submission_id: str) -> Optional[schemas.Submission]:
    return repos.submissions.get(submission_id)


def submissions_for_exam(repos: Repositories, exam_id: str) -> List[schemas.Submission]:
    return [s for s in repos.submissions.all() if s.exam_id == exam_id]


def submissions_for_student(repos: Repositories, student_id: str) -> List[schemas.Submission]:
    return [s for s in repos.submissions.all() if s.student_id == student_id]


def has_taken(repos: Repositories, student_id: str, exam_id: str) -> bool:
    return any(s.exam_id == exam_id for s in submissions_for_student(repos, student_id))


def owns_exam(user: schemas.User, exam: schemas.Exam) -> bool:
    """Teachers own the exams they created; admins own every exam."""
    return user.role == schemas.UserRole.ADMIN or exam.created_by == user.id


def teacher_dashboard(repos: Repositories, user: schemas.User) -> List[schemas.ExamSummary]:
    """The user's own exams, each with its count of unresolved feedback."""
    return [
        schemas.ExamSummary(
            id=e.id,
            title=e.title,
            subject=e.subject,
            duration_minutes=e.duration_minutes,
            question_count=len(e.questions),
            is_published=e.is_published,
            created_at=e.created_at,
            unresolved_feedback=unresolved_count(feedback_for_exam(repos, e.id)),
        )
        for e in list_exams(repos)
        if owns_exam(user, e)
    ]
