"""
Tests for the randomized exam presentation.
"""

import random

from smartcia import schemas
from smartcia.grading import grade_answer
from smartcia.presentation import build_presentation, to_student_view


def _big_exam():
    questions = [
        schemas.Question(id=f"m{i}", text=f"MCQ {i}", type=schemas.QuestionType.MCQ, marks=2,
                         options=[f"opt{i}-{j}" for j in range(4)], correct_option_index=i % 4)
        for i in range(8)
    ] + [
        schemas.Question(id=f"s{i}", text=f"Short {i}", type=schemas.QuestionType.SHORT_ANSWER, marks=5,
                         rubric="key points")
        for i in range(4)
    ]
    return schemas.Exam(id="big", title="Big", subject="S", duration_minutes=60, questions=questions,
                        created_by="AI26", is_published=True)


class TestBuildPresentation:
    def test_copy_is_independent(self, exam):
        before = exam.model_dump()
        view = build_presentation(exam, random.Random(1))
        view.questions[0].text = "changed"
        view.questions.pop()
        assert exam.model_dump() == before

    def test_same_questions_and_options(self):
        exam = _big_exam()
        view = build_presentation(exam, random.Random(7))
        assert sorted(q.id for q in view.questions) == sorted(q.id for q in exam.questions)
        for q in view.questions:
            canonical = exam.question(q.id)
            assert sorted(q.options) == sorted(canonical.options)

    def test_correct_index_is_not_moved(self):
        exam = _big_exam()
        view = build_presentation(exam, random.Random(3))
        for q in view.questions:
            assert q.correct_option_index == exam.question(q.id).correct_option_index

    def test_seeded_shuffle_is_reproducible(self):
        exam = _big_exam()
        a = build_presentation(exam, random.Random(42))
        b = build_presentation(exam, random.Random(42))
        assert a.model_dump() == b.model_dump()

    def test_order_actually_changes_for_some_seed(self):
        exam = _big_exam()
        canonical = [q.id for q in exam.questions]
        orders = {tuple(q.id for q in build_presentation(exam, random.Random(s)).questions) for s in range(10)}
        assert any(list(o) != canonical for o in orders)

    def test_grading_unaffected_by_shuffle(self):
        """Picking the canonical correct text always scores full marks, whatever the display order."""
        exam = _big_exam()
        for seed in range(20):
            view = build_presentation(exam, random.Random(seed))
            for shown in view.questions:
                if shown.type != schemas.QuestionType.MCQ:
                    continue
                canonical = exam.question(shown.id)
                chosen = next(o for o in shown.options if o == canonical.correct_option_text)
                assert grade_answer(canonical, chosen, grader=None).score == canonical.marks


def test_student_view_strips_answer_keys(exam):
    view = to_student_view(build_presentation(exam, random.Random(0)))
    dumped = view.model_dump()
    assert {q["id"] for q in dumped["questions"]} == {"q1", "q2"}
    for q in dumped["questions"]:
        assert "correct_option_index" not in q
        assert "rubric" not in q
        assert "sample_answer" not in q
