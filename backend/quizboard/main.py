"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the Quizboard backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Domain errors raised by services
are translated to JSON responses by a single exception handler.

Endpoints implemented:
- POST /auth/register, POST /auth/login, GET /auth/me
- GET|POST /questions, PATCH|DELETE /questions/{id}
- POST /questions/import, GET /questions/csv-template, POST /media/images
- GET|POST /quizzes, GET|PATCH|DELETE /quizzes/{id}
- POST /quizzes/{id}/attempts, GET /attempts/{sid},
  PUT /attempts/{sid}/answers, POST /attempts/{sid}/navigate,
  POST /attempts/{sid}/submit
- GET /results, GET /results/{id}, PATCH /results/{id}/remarks,
  PATCH /results/{id}/feedback
- GET /quizzes/{id}/analytics, GET /leaderboard
- GET /dashboard/teacher, GET /dashboard/student
- GET /health
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, UploadFile, File, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlmodel import Session
from typing import List
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import domain, services
from .analytics import RankingMode, performance_remark
from .attempts import AttemptSession
from .auth import get_current_user, require_student, require_teacher
from .config import settings
from .errors import QuizboardError
from .schemas import (
    AttemptOut, AnswerIn, FeedbackIn, LoginIn, NavigateIn, OverallLeaderboardRowOut,
    QuestionIn, QuestionOut, QuestionPatch, QuizIn, QuizOut, QuizPatch, QuizReportOut,
    RegisterIn, RemarksIn, ResultOut, StudentDashboardOut, StudentQuestionOut,
    TeacherDashboardOut, TokenOut, UserOut,
)
from .utils.media import get_media_root, save_question_image
from .utils.session_store import AttemptSessionStore
from .utils.csv_import import get_csv_template

logger = logging.getLogger("quizboard.api")
if not logger.handlers:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

attempt_store = AttemptSessionStore(ttl_seconds=settings.ATTEMPT_SESSION_TTL_SECONDS)

create_db_and_tables()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if settings.ATTEMPT_TICKER:
        attempt_store.start_ticker()
    try:
        yield
    finally:
        attempt_store.stop_ticker()


app = FastAPI(title="Quizboard API", lifespan=lifespan)

# Wide-open CORS keeps a locally served browser front end working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    summary = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        summary["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(summary, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    summary["status_code"] = response.status_code
    summary["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info("request_done %s", json.dumps(summary, ensure_ascii=True))
    return response


@app.exception_handler(QuizboardError)
async def quizboard_error_handler(request: Request, exc: QuizboardError):
    logger.info("request_rejected %s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def _result_out(result: domain.StudentResult) -> ResultOut:
    out = ResultOut.model_validate(result, from_attributes=True)
    return out.model_copy(update={'remark': performance_remark(result.percentage)})


def _attempt_out(attempt: AttemptSession) -> AttemptOut:
    # the ticker thread may finalize the session concurrently
    snap = attempt.snapshot()
    return AttemptOut(
        session_id=snap['session_id'],
        quiz_id=snap['quiz_id'],
        title=snap['title'],
        state=snap['state'].value,
        current_index=snap['current_index'],
        questions=[StudentQuestionOut.model_validate(q, from_attributes=True) for q in snap['questions']],
        answers=snap['answers'],
        answered_count=snap['answered_count'],
        progress=round(snap['progress'], 1),
        remaining_seconds=snap['remaining_seconds'],
        time_left=snap['time_left'],
        result=_result_out(snap['result']) if snap['result'] else None,
    )


# -- auth --------------------------------------------------------------------

@app.post('/auth/register', response_model=UserOut)
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a teacher or student account."""
    user = services.AuthService(db).register(
        payload.name, payload.email, payload.password, payload.confirm_password, payload.user_type,
    )
    return UserOut.model_validate(user, from_attributes=True)


@app.post('/auth/login', response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token.

    The returned token contains `user_id` and `user_type` and is signed
    using the configured JWT secret.
    """
    token = services.AuthService(db).authenticate(payload.email, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return TokenOut(access_token=token)


@app.get('/auth/me', response_model=UserOut)
def me(user: domain.User = Depends(get_current_user)):
    return UserOut.model_validate(user, from_attributes=True)


# -- question bank -------------------------------------------------------------

@app.get('/questions', response_model=List[QuestionOut])
def list_questions(db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    """List the full question bank, correct answers included."""
    return [QuestionOut.model_validate(q, from_attributes=True) for q in services.QuestionService(db).list_questions()]


@app.post('/questions', response_model=QuestionOut, status_code=201)
def create_question(payload: QuestionIn, db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    q = services.QuestionService(db).create_question(user, payload.model_dump())
    return QuestionOut.model_validate(q, from_attributes=True)


@app.patch('/questions/{question_id}', response_model=QuestionOut)
def update_question(question_id: int, payload: QuestionPatch, db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    """Partially update a question owned by the caller."""
    q = services.QuestionService(db).update_question(user, question_id, payload.model_dump(exclude_unset=True))
    return QuestionOut.model_validate(q, from_attributes=True)


@app.delete('/questions/{question_id}')
def delete_question(question_id: int, db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    """Delete a question and remove it from every quiz that uses it."""
    touched = services.QuestionService(db).delete_question(user, question_id)
    return {'status': 'ok', 'quizzes_updated': touched}


@app.post('/questions/import')
def import_questions(file: UploadFile = File(...), dry_run: bool = False, db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    """Bulk-create questions from an uploaded CSV file.

    Returns `{created, ids, errors}`; rows failing validation are listed
    in `errors` with their index and skipped.
    """
    if not file.filename or not file.filename.lower().endswith('.csv'):
        raise HTTPException(status_code=400, detail='Please upload a valid CSV file')
    content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail='file too large')
    return services.QuestionService(db).import_csv(user, content, dry_run=dry_run)


@app.get('/questions/csv-template', response_class=PlainTextResponse)
def csv_template():
    return PlainTextResponse(get_csv_template(), media_type='text/csv')


@app.post('/media/images', status_code=201)
def upload_image(file: UploadFile = File(...), user: domain.User = Depends(require_teacher)):
    """Store a JPEG/PNG question image and return its public URL."""
    payload = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    return save_question_image(payload)


# -- quizzes -------------------------------------------------------------------

@app.get('/quizzes', response_model=List[QuizOut])
def list_quizzes(db: Session = Depends(get_session), user: domain.User = Depends(get_current_user)):
    """Teachers get their own quizzes, students the active ones."""
    return [QuizOut.model_validate(q, from_attributes=True) for q in services.QuizService(db).list_for_user(user)]


@app.post('/quizzes', response_model=QuizOut, status_code=201)
def create_quiz(payload: QuizIn, db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    quiz = services.QuizService(db).create_quiz(user, payload.title, payload.question_ids, payload.time_limit, payload.active)
    return QuizOut.model_validate(quiz, from_attributes=True)


@app.get('/quizzes/{quiz_id}', response_model=QuizOut)
def get_quiz(quiz_id: int, db: Session = Depends(get_session), user: domain.User = Depends(get_current_user)):
    return QuizOut.model_validate(services.QuizService(db).get_for_user(user, quiz_id), from_attributes=True)


@app.patch('/quizzes/{quiz_id}', response_model=QuizOut)
def update_quiz(quiz_id: int, payload: QuizPatch, db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    quiz = services.QuizService(db).update_quiz(user, quiz_id, payload.model_dump(exclude_unset=True))
    return QuizOut.model_validate(quiz, from_attributes=True)


@app.delete('/quizzes/{quiz_id}')
def delete_quiz(quiz_id: int, db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    """Delete a quiz; its results are removed first."""
    removed = services.QuizService(db, attempt_store).delete_quiz(user, quiz_id)
    return {'status': 'ok', 'results_removed': removed}


# -- attempts ------------------------------------------------------------------

@app.post('/quizzes/{quiz_id}/attempts', response_model=AttemptOut, status_code=201)
def start_attempt(quiz_id: int, db: Session = Depends(get_session), user: domain.User = Depends(require_student)):
    """Start (or resume) the caller's attempt at a quiz.

    Answers 409 if the student already has a result for the quiz.
    """
    attempt = services.AttemptService(db, attempt_store).start(user, quiz_id)
    return _attempt_out(attempt)


@app.get('/attempts/{session_id}', response_model=AttemptOut)
def get_attempt(session_id: str, db: Session = Depends(get_session), user: domain.User = Depends(require_student)):
    return _attempt_out(services.AttemptService(db, attempt_store).get(user, session_id))


@app.put('/attempts/{session_id}/answers', response_model=AttemptOut)
def answer_question(session_id: str, payload: AnswerIn, db: Session = Depends(get_session), user: domain.User = Depends(require_student)):
    attempt = services.AttemptService(db, attempt_store).get(user, session_id)
    attempt.answer(payload.question_id, payload.answer)
    return _attempt_out(attempt)


@app.post('/attempts/{session_id}/navigate', response_model=AttemptOut)
def navigate_attempt(session_id: str, payload: NavigateIn, db: Session = Depends(get_session), user: domain.User = Depends(require_student)):
    """Jump to `index`, or step with `direction` = next/previous."""
    attempt = services.AttemptService(db, attempt_store).get(user, session_id)
    if payload.index is not None:
        attempt.navigate(payload.index)
    elif payload.direction == 'next':
        attempt.next()
    elif payload.direction == 'previous':
        attempt.previous()
    else:
        raise HTTPException(status_code=400, detail='index or direction required')
    return _attempt_out(attempt)


@app.post('/attempts/{session_id}/submit', response_model=AttemptOut)
def submit_attempt(session_id: str, db: Session = Depends(get_session), user: domain.User = Depends(require_student)):
    attempt = services.AttemptService(db, attempt_store).get(user, session_id)
    attempt.submit()
    return _attempt_out(attempt)


# -- results -------------------------------------------------------------------

@app.get('/results', response_model=List[ResultOut])
def list_results(db: Session = Depends(get_session), user: domain.User = Depends(get_current_user)):
    return [_result_out(r) for r in services.ResultService(db).list_for_user(user)]


@app.get('/results/{result_id}', response_model=ResultOut)
def get_result(result_id: int, db: Session = Depends(get_session), user: domain.User = Depends(get_current_user)):
    return _result_out(services.ResultService(db).get_for_user(user, result_id))


@app.patch('/results/{result_id}/remarks', response_model=ResultOut)
def set_remarks(result_id: int, payload: RemarksIn, db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    """Teacher remarks on a result of one of their quizzes."""
    return _result_out(services.ResultService(db).set_remarks(user, result_id, payload.remarks))


@app.patch('/results/{result_id}/feedback', response_model=ResultOut)
def set_feedback(result_id: int, payload: FeedbackIn, db: Session = Depends(get_session), user: domain.User = Depends(require_student)):
    """Student feedback on their own result."""
    return _result_out(services.ResultService(db).set_feedback(user, result_id, payload.feedback))


# -- analytics -----------------------------------------------------------------

@app.get('/quizzes/{quiz_id}/analytics', response_model=QuizReportOut)
def quiz_analytics(quiz_id: int, ranking: RankingMode = RankingMode.DENSE, db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    """Per-quiz accuracy breakdowns, score bands and leaderboard."""
    report = services.AnalyticsService(db).quiz_report(user, quiz_id, ranking)
    return QuizReportOut.model_validate(report, from_attributes=True)


@app.get('/leaderboard', response_model=List[OverallLeaderboardRowOut])
def leaderboard(db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    rows = services.AnalyticsService(db).overall_leaderboard(user)
    return [OverallLeaderboardRowOut.model_validate(r, from_attributes=True) for r in rows]


@app.get('/dashboard/teacher', response_model=TeacherDashboardOut)
def teacher_dashboard(db: Session = Depends(get_session), user: domain.User = Depends(require_teacher)):
    return TeacherDashboardOut(**services.AnalyticsService(db).teacher_dashboard(user))


@app.get('/dashboard/student', response_model=StudentDashboardOut)
def student_dashboard(db: Session = Depends(get_session), user: domain.User = Depends(require_student)):
    summary = services.AnalyticsService(db).student_dashboard(user)
    summary['results'] = [_result_out(r) for r in summary['results']]
    return StudentDashboardOut.model_validate(summary, from_attributes=True)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


# Mounted last so the prefix does not shadow POST /media/images.
app.mount(settings.MEDIA_URL_PREFIX, StaticFiles(directory=get_media_root()), name="media")
