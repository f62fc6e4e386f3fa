import random
from typing import Optional

from smartcia import schemas


def build_presentation(exam: schemas.Exam, rng: Optional[random.Random] = None) -> schemas.Exam:
    """
    Randomized display copy of a canonical exam.

    Question order and each MCQ's option order are shuffled independently
    (Fisher-Yates via ``random.Random.shuffle``). ``correct_option_index`` is
    left as stored: grading matches option text against the canonical exam,
    never this copy.
    """
    rng = rng or random.Random()
    view = exam.model_copy(deep=True)

    rng.shuffle(view.questions)
    for q in view.questions:
        if q.type == schemas.QuestionType.MCQ and q.options:
            q.options = list(q.options)
            rng.shuffle(q.options)
    return view


def to_student_view(exam: schemas.Exam) -> schemas.ExamView:
    """Drop answer keys (correct index, rubric, sample answer) before display."""
    return schemas.ExamView.model_validate(exam.model_dump())
