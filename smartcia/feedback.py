import uuid
from collections import defaultdict
from typing import Dict, List

from smartcia import schemas
from smartcia.store import Repositories

DISPUTE_PREFIX = "[GRADE DISPUTE] "


def file_feedback(
    repos: Repositories,
    exam_id: str,
    question_id: str,
    student: schemas.User,
    text: str,
    dispute: bool = False,
) -> schemas.Feedback:
    """Append a new, unresolved entry to the log."""
    entry = schemas.Feedback(
        id=uuid.uuid4().hex,
        exam_id=exam_id,
        question_id=question_id,
        student_id=student.id,
        student_name=student.name,
        text=f"{DISPUTE_PREFIX}{text}" if dispute else text,
        is_resolved=False,
    )
    repos.feedback.append(entry)
    return entry


def resolve_feedback(repos: Repositories, feedback_id: str) -> bool:
    with repos.lock:
        items = repos.feedback.all()
        for item in items:
            if item.id == feedback_id:
                item.is_resolved = True
                repos.feedback.save_all(items)
                return True
    return False


def feedback_for_exam(repos: Repositories, exam_id: str) -> List[schemas.Feedback]:
    return [f for f in repos.feedback.all() if f.exam_id == exam_id]


def group_by_question(entries: List[schemas.Feedback]) -> Dict[str, List[schemas.Feedback]]:
    grouped: Dict[str, List[schemas.Feedback]] = defaultdict(list)
    for entry in entries:
        grouped[entry.question_id].append(entry)
    return dict(grouped)


def unresolved_count(entries: List[schemas.Feedback]) -> int:
    return sum(1 for e in entries if not e.is_resolved)
