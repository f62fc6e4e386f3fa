import pytest

from smartcia import schemas
from smartcia.store import InMemoryStore, Repositories


class StubGrader:
    """Records calls and returns a fixed result (or raises)."""

    def __init__(self, score=2, feedback="Partially correct", error=None):
        self.score = score
        self.feedback = feedback
        self.error = error
        self.calls = []

    def __call__(self, question_text, max_marks, reference, student_answer):
        self.calls.append((question_text, max_marks, reference, student_answer))
        if self.error is not None:
            raise self.error
        return {"score": self.score, "feedback": self.feedback}


@pytest.fixture
def repos():
    return Repositories(InMemoryStore())


@pytest.fixture
def make_grader():
    return StubGrader


@pytest.fixture
def grader():
    return StubGrader()


@pytest.fixture
def student():
    return schemas.User(id="222BCAA29", name="Student 222BCAA29", role=schemas.UserRole.STUDENT,
                        email="222bcaa29@university.edu")


@pytest.fixture
def teacher():
    return schemas.User(id="AI26", name="Prof. AI", role=schemas.UserRole.TEACHER, email="ai26@university.edu")


@pytest.fixture
def mcq_question():
    return schemas.Question(
        id="q1",
        text="Pick B",
        type=schemas.QuestionType.MCQ,
        marks=5,
        options=["A", "B", "C"],
        correct_option_index=1,
    )


@pytest.fixture
def short_question():
    return schemas.Question(
        id="q2",
        text="Explain EDA",
        type=schemas.QuestionType.SHORT_ANSWER,
        marks=5,
        rubric="Mentions summarising data characteristics",
    )


@pytest.fixture
def exam(mcq_question, short_question):
    return schemas.Exam(
        id="exam-1",
        title="Unit Test 1",
        subject="Artificial Intelligence",
        duration_minutes=30,
        questions=[mcq_question, short_question],
        created_by="AI26",
        is_published=True,
    )


@pytest.fixture
def stored_exam(repos, exam):
    repos.exams.put(exam)
    return exam
