from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional, Dict


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class QuestionType(str, Enum):
    MCQ = "MCQ"
    SHORT_ANSWER = "SHORT_ANSWER"
    LONG_ANSWER = "LONG_ANSWER"


class GenerationType(str, Enum):
    MIXED = "MIXED"
    MCQ = "MCQ"
    SHORT_ANSWER = "SHORT_ANSWER"


class User(BaseModel):
    id: str
    name: str
    role: UserRole
    email: str


class Question(BaseModel):
    id: str
    text: str
    type: QuestionType
    marks: float = Field(gt=0)
    options: List[str] = Field(default_factory=list)  # MCQ only
    correct_option_index: Optional[int] = None  # index into the canonical options
    rubric: Optional[str] = None
    sample_answer: Optional[str] = None

    @model_validator(mode="after")
    def _check_mcq_key(self):
        if self.type == QuestionType.MCQ:
            if not self.options:
                raise ValueError(f"question {self.id}: MCQ requires non-empty options")
            idx = self.correct_option_index
            if idx is None or not 0 <= idx < len(self.options):
                raise ValueError(
                    f"question {self.id}: correct_option_index {idx} out of range for {len(self.options)} options"
                )
        return self

    @property
    def is_subjective(self) -> bool:
        return self.type != QuestionType.MCQ

    @property
    def correct_option_text(self) -> Optional[str]:
        if self.type != QuestionType.MCQ:
            return None
        return self.options[self.correct_option_index]


class Exam(BaseModel):
    id: str
    title: str
    subject: str
    duration_minutes: int = Field(gt=0)
    questions: List[Question] = Field(default_factory=list)
    created_by: str
    is_published: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    def question(self, question_id: str) -> Optional[Question]:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None


class Answer(BaseModel):
    question_id: str
    student_answer: str = ""
    obtained_marks: Optional[float] = None
    feedback: Optional[str] = None
    is_graded: bool = False


class Submission(BaseModel):
    id: str
    exam_id: str
    student_id: str
    student_name: str
    answers: List[Answer] = Field(default_factory=list)
    total_score: float = 0.0
    max_score: float = 0.0
    submitted_at: datetime = Field(default_factory=utcnow)
    ai_evaluated: bool = False

    def answer(self, question_id: str) -> Optional[Answer]:
        for a in self.answers:
            if a.question_id == question_id:
                return a
        return None


class Feedback(BaseModel):
    id: str
    exam_id: str
    question_id: str
    student_id: str
    student_name: str
    text: str
    timestamp: datetime = Field(default_factory=utcnow)
    is_resolved: bool = False


class GradingResult(BaseModel):
    score: float
    feedback: str


# --- Student-facing exam view (answer keys stripped) ---
class QuestionView(BaseModel):
    id: str
    text: str
    type: QuestionType
    marks: float
    options: List[str] = Field(default_factory=list)


class ExamView(BaseModel):
    id: str
    title: str
    subject: str
    duration_minutes: int
    questions: List[QuestionView]


# --- Teacher dashboard ---
class ExamSummary(BaseModel):
    id: str
    title: str
    subject: str
    duration_minutes: int
    question_count: int
    is_published: bool
    created_at: datetime
    unresolved_feedback: int = 0


# --- Analytics ---
class ScorePoint(BaseModel):
    student_name: str
    score: float


class ExamAnalytics(BaseModel):
    exam_id: str
    total_submissions: int
    average_score: float
    max_score: float
    passed: int
    failed: int
    pass_rate: float  # percent
    score_distribution: List[ScorePoint] = Field(default_factory=list)


# --- API payloads ---
class LoginPayload(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    token: str
    user: User


class QuestionCreate(BaseModel):
    text: str
    type: QuestionType
    marks: float = Field(default=5, gt=0)
    options: List[str] = Field(default_factory=list)
    correct_option_index: Optional[int] = None
    rubric: Optional[str] = None
    sample_answer: Optional[str] = None
    id: Optional[str] = None


class ExamCreate(BaseModel):
    title: str
    subject: str
    duration_minutes: int = Field(default=30, gt=0)
    questions: List[QuestionCreate] = Field(default_factory=list)


class SubmitPayload(BaseModel):
    # question id -> option text or free text
    answers: Dict[str, str] = Field(default_factory=dict)


class GradeRevision(BaseModel):
    marks: float


class FeedbackCreate(BaseModel):
    question_id: str
    text: str
    dispute: bool = False


class GeneratePayload(BaseModel):
    topic: str
    count: int = Field(default=3, gt=0, le=20)
    type: GenerationType = GenerationType.MIXED


# --- Admin/Config Schemas ---
class GeminiKeyPayload(BaseModel):
    api_key: str


class KeyStatus(BaseModel):
    gemini_key_set: bool
