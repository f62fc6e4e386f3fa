from typing import List

from smartcia import schemas
from smartcia.config import PASS_THRESHOLD


def is_pass(submission: schemas.Submission, threshold: float = PASS_THRESHOLD) -> bool:
    if submission.max_score <= 0:
        return False
    return submission.total_score / submission.max_score >= threshold


def summarize_exam(
    exam: schemas.Exam,
    submissions: List[schemas.Submission],
    threshold: float = PASS_THRESHOLD,
) -> schemas.ExamAnalytics:
    """Average total, pass/fail split and per-student score list for one exam."""
    total = len(submissions)
    average = sum(s.total_score for s in submissions) / total if total else 0.0
    passed = sum(1 for s in submissions if is_pass(s, threshold))

    return schemas.ExamAnalytics(
        exam_id=exam.id,
        total_submissions=total,
        average_score=average,
        max_score=sum(q.marks for q in exam.questions),
        passed=passed,
        failed=total - passed,
        pass_rate=(passed / total) * 100 if total else 0.0,
        score_distribution=[
            schemas.ScorePoint(student_name=s.student_name, score=s.total_score) for s in submissions
        ],
    )
