import logging
import random
from typing import Callable, Dict, List, Optional

from fastapi import Cookie, Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from smartcia import analytics, auth, crud, feedback, pipeline, schemas
from smartcia.config import DATA_DIR, GEMINI_API_KEY
from smartcia.database import get_session_local
from smartcia.llm import GeminiGrader, QuestionGenerationError, generate_questions
from smartcia.loader import prepare_store
from smartcia.presentation import build_presentation, to_student_view
from smartcia.store import Repositories, SqlAlchemyStore


# -------------------------------------------------
# Logger
# -------------------------------------------------
logger = logging.getLogger("smartcia")
if not logger.handlers:
    _h = logging.StreamHandler()
    _h.setFormatter(logging.Formatter('[%(levelname)s] %(message)s'))
    logger.addHandler(_h)
logger.setLevel(logging.INFO)


# -------------------------------------------------
# FastAPI app / CORS / UTF-8 middleware
# -------------------------------------------------
app = FastAPI(title="SmartCIA")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def ensure_utf8_json(request: Request, call_next):
    """
    Append charset=utf-8 to JSON responses so browsers don't fall back to Latin-1.
    """
    response = await call_next(request)
    ct = response.headers.get("content-type", "")
    if ct.startswith("application/json") and "charset" not in ct.lower():
        response.headers["content-type"] = "application/json; charset=utf-8"
    return response


SESSION_COOKIE = "smartcia_session"

# Login sessions live in memory; a restart logs everyone out
app.state.sessions = auth.SessionRegistry()


@app.on_event("startup")
def on_startup():
    # Gemini key (if any) is kept in memory only
    app.state.gemini_api_key = GEMINI_API_KEY
    app.state.repos = Repositories(SqlAlchemyStore(get_session_local()))
    count = prepare_store(app.state.repos, DATA_DIR)
    if count:
        logger.info("[startup] imported %d exams from %s", count, DATA_DIR)


# -------------------------------------------------
# Dependencies
# -------------------------------------------------
def get_repos() -> Repositories:
    return app.state.repos


def get_grader() -> GeminiGrader:
    return GeminiGrader(getattr(app.state, "gemini_api_key", None))


def get_question_generator() -> Callable[[str, int, schemas.GenerationType], List[schemas.Question]]:
    api_key = getattr(app.state, "gemini_api_key", None)

    def _generate(topic: str, count: int, qtype: schemas.GenerationType) -> List[schemas.Question]:
        return generate_questions(topic, api_key, count=count, qtype=qtype)

    return _generate


def get_sessions() -> auth.SessionRegistry:
    return app.state.sessions


def get_session_token(
    x_session_token: Optional[str] = Header(None),
    smartcia_session: Optional[str] = Cookie(None),
) -> Optional[str]:
    """Token from the X-Session-Token header, falling back to the session cookie."""
    return x_session_token or smartcia_session


def get_current_user(
    token: Optional[str] = Depends(get_session_token),
    sessions: auth.SessionRegistry = Depends(get_sessions),
) -> schemas.User:
    user = sessions.get(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Not logged in")
    return user


def require_staff(user: schemas.User = Depends(get_current_user)) -> schemas.User:
    if not auth.is_staff(user):
        raise HTTPException(status_code=403, detail="Teacher access required")
    return user


def _exam_or_404(repos: Repositories, exam_id: str) -> schemas.Exam:
    exam = crud.get_exam(repos, exam_id)
    if exam is None:
        raise HTTPException(status_code=404, detail=f"Exam {exam_id} not found")
    return exam


def _owned_exam_or_404(repos: Repositories, exam_id: str, user: schemas.User) -> schemas.Exam:
    exam = _exam_or_404(repos, exam_id)
    if not crud.owns_exam(user, exam):
        raise HTTPException(status_code=403, detail=f"Exam {exam_id} belongs to another teacher")
    return exam


# -------------------------------------------------
# Session
# -------------------------------------------------
@app.post("/api/login", response_model=schemas.LoginResponse)
def login(
    payload: schemas.LoginPayload,
    response: Response,
    repos: Repositories = Depends(get_repos),
    sessions: auth.SessionRegistry = Depends(get_sessions),
):
    """
    Open a session for this client. The token comes back in the body and as a
    cookie; send it as X-Session-Token or let the cookie carry it.
    """
    user = auth.login(repos, payload.username, payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = sessions.open(user)
    response.set_cookie(SESSION_COOKIE, token, httponly=True, samesite="lax")
    logger.info("[login] %s (%s)", user.id, user.role.value)
    return schemas.LoginResponse(token=token, user=user)


@app.post("/api/logout")
def logout(
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    repos: Repositories = Depends(get_repos),
    sessions: auth.SessionRegistry = Depends(get_sessions),
):
    user = sessions.close(token)
    if user is not None:
        auth.logout(repos, user)
    response.delete_cookie(SESSION_COOKIE)
    return {"ok": True}


@app.get("/api/me", response_model=schemas.User)
def me(user: schemas.User = Depends(get_current_user)):
    return user


# -------------------------------------------------
# Exams
# -------------------------------------------------
@app.get("/api/exams", response_model=List[schemas.ExamView])
def list_exams(
    published: bool = False,
    repos: Repositories = Depends(get_repos),
    user: schemas.User = Depends(get_current_user),
):
    """
    Exams without answer keys. Students only ever see published ones.
    """
    published_only = published or not auth.is_staff(user)
    return [to_student_view(e) for e in crud.list_exams(repos, published_only=published_only)]


@app.post("/api/exams", response_model=schemas.Exam, status_code=201)
def create_exam(
    payload: schemas.ExamCreate,
    repos: Repositories = Depends(get_repos),
    user: schemas.User = Depends(require_staff),
):
    try:
        return crud.create_exam(repos, payload, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/dashboard", response_model=List[schemas.ExamSummary])
def dashboard(repos: Repositories = Depends(get_repos), user: schemas.User = Depends(require_staff)):
    """The caller's own exams with their unresolved feedback counts."""
    return crud.teacher_dashboard(repos, user)


@app.get("/api/exams/{exam_id}", response_model=schemas.Exam)
def read_exam(exam_id: str, repos: Repositories = Depends(get_repos), user: schemas.User = Depends(require_staff)):
    return _owned_exam_or_404(repos, exam_id, user)


@app.get("/api/exams/{exam_id}/take", response_model=schemas.ExamView)
def take_exam(
    exam_id: str,
    seed: Optional[int] = None,
    repos: Repositories = Depends(get_repos),
    user: schemas.User = Depends(get_current_user),
):
    """
    Randomized, answer-key-free copy of the exam for the student.
    `seed` makes the shuffle reproducible.
    """
    exam = _exam_or_404(repos, exam_id)
    if not exam.is_published:
        raise HTTPException(status_code=404, detail=f"Exam {exam_id} not found")
    rng = random.Random(seed) if seed is not None else None
    return to_student_view(build_presentation(exam, rng))


@app.post("/api/exams/{exam_id}/submit", response_model=schemas.Submission, status_code=201)
def submit_exam(
    exam_id: str,
    payload: schemas.SubmitPayload,
    repos: Repositories = Depends(get_repos),
    grader: GeminiGrader = Depends(get_grader),
    user: schemas.User = Depends(get_current_user),
):
    """
    Grade and store the student's answers against the stored (canonical) exam.
    """
    exam = _exam_or_404(repos, exam_id)
    # Cheap early refusal; submit_once re-checks under the store lock
    if crud.has_taken(repos, user.id, exam_id):
        raise HTTPException(status_code=409, detail="Exam already submitted")
    submission = pipeline.submit_once(repos, exam, payload.answers, user, grader)
    if submission is None:
        raise HTTPException(status_code=409, detail="Exam already submitted")
    return submission


@app.get("/api/exams/{exam_id}/submissions", response_model=List[schemas.Submission])
def exam_submissions(exam_id: str, repos: Repositories = Depends(get_repos), user: schemas.User = Depends(require_staff)):
    _owned_exam_or_404(repos, exam_id, user)
    return crud.submissions_for_exam(repos, exam_id)


@app.get("/api/exams/{exam_id}/analytics", response_model=schemas.ExamAnalytics)
def exam_analytics(exam_id: str, repos: Repositories = Depends(get_repos), user: schemas.User = Depends(require_staff)):
    exam = _owned_exam_or_404(repos, exam_id, user)
    return analytics.summarize_exam(exam, crud.submissions_for_exam(repos, exam_id))


# -------------------------------------------------
# Submissions
# -------------------------------------------------
@app.get("/api/submissions", response_model=List[schemas.Submission])
def my_submissions(repos: Repositories = Depends(get_repos), user: schemas.User = Depends(get_current_user)):
    return crud.submissions_for_student(repos, user.id)


@app.get("/api/submissions/{submission_id}", response_model=schemas.Submission)
def read_submission(
    submission_id: str,
    repos: Repositories = Depends(get_repos),
    user: schemas.User = Depends(get_current_user),
):
    submission = crud.get_submission(repos, submission_id)
    if submission is None or (submission.student_id != user.id and not auth.is_staff(user)):
        raise HTTPException(status_code=404, detail=f"Submission {submission_id} not found")
    return submission


@app.put("/api/submissions/{submission_id}/answers/{question_id}", response_model=schemas.Submission)
def revise_answer(
    submission_id: str,
    question_id: str,
    payload: schemas.GradeRevision,
    repos: Repositories = Depends(get_repos),
    user: schemas.User = Depends(require_staff),
):
    submission = crud.get_submission(repos, submission_id)
    if submission is not None:
        exam = crud.get_exam(repos, submission.exam_id)
        if exam is not None and not crud.owns_exam(user, exam):
            raise HTTPException(status_code=403, detail=f"Exam {exam.id} belongs to another teacher")
    if not pipeline.revise_grade(repos, submission_id, question_id, payload.marks):
        raise HTTPException(
            status_code=404,
            detail=f"Answer for question {question_id} in submission {submission_id} not found",
        )
    return crud.get_submission(repos, submission_id)


# -------------------------------------------------
# Feedback / disputes
# -------------------------------------------------
@app.post("/api/exams/{exam_id}/feedback", response_model=schemas.Feedback, status_code=201)
def post_feedback(
    exam_id: str,
    payload: schemas.FeedbackCreate,
    repos: Repositories = Depends(get_repos),
    user: schemas.User = Depends(get_current_user),
):
    exam = _exam_or_404(repos, exam_id)
    if exam.question(payload.question_id) is None:
        raise HTTPException(status_code=404, detail=f"Question {payload.question_id} not found")
    if not payload.text.strip():
        raise HTTPException(status_code=400, detail="Feedback text is empty")
    return feedback.file_feedback(repos, exam_id, payload.question_id, user, payload.text, dispute=payload.dispute)


@app.get("/api/exams/{exam_id}/feedback", response_model=Dict[str, List[schemas.Feedback]])
def exam_feedback(exam_id: str, repos: Repositories = Depends(get_repos), user: schemas.User = Depends(require_staff)):
    """Feedback for the exam grouped by question id."""
    _owned_exam_or_404(repos, exam_id, user)
    return feedback.group_by_question(feedback.feedback_for_exam(repos, exam_id))


@app.post("/api/feedback/{feedback_id}/resolve")
def resolve_feedback(feedback_id: str, repos: Repositories = Depends(get_repos), user: schemas.User = Depends(require_staff)):
    entry = next((f for f in repos.feedback.all() if f.id == feedback_id), None)
    if entry is not None:
        exam = crud.get_exam(repos, entry.exam_id)
        if exam is not None and not crud.owns_exam(user, exam):
            raise HTTPException(status_code=403, detail=f"Exam {exam.id} belongs to another teacher")
    return {"resolved": feedback.resolve_feedback(repos, feedback_id)}


# -------------------------------------------------
# Question generation
# -------------------------------------------------
@app.post("/api/questions/generate", response_model=List[schemas.Question])
def generate(
    payload: schemas.GeneratePayload,
    generator=Depends(get_question_generator),
    user: schemas.User = Depends(require_staff),
):
    try:
        return generator(payload.topic, payload.count, payload.type)
    except QuestionGenerationError as e:
        raise HTTPException(status_code=502, detail=f"Error generating questions: {e}")


# --- Gemini key mgmt (in-memory only) ---
@app.get("/api/config/status", response_model=schemas.KeyStatus)
def get_config_status():
    return schemas.KeyStatus(gemini_key_set=bool(getattr(app.state, "gemini_api_key", None)))


@app.post("/api/config/gemini", response_model=schemas.KeyStatus)
def set_gemini_key(payload: schemas.GeminiKeyPayload):
    # Do NOT log the key
    app.state.gemini_api_key = payload.api_key.strip()
    return schemas.KeyStatus(gemini_key_set=True)


@app.post("/api/config/gemini/clear", response_model=schemas.KeyStatus)
def clear_gemini_key():
    app.state.gemini_api_key = None
    return schemas.KeyStatus(gemini_key_set=False)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("smartcia.main:app", host="0.0.0.0", port=8000, reload=True)
