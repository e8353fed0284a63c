"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the in-memory catalog snapshots, attempt sessions and analytics.
Services perform validation, enforce ownership and persist aggregates
via repositories. Validation failures raise `ValidationError` before
anything is written.

Cascading deletes are computed on a `QuizCatalog`/`ResultStore`
snapshot and only the rows that differ are written back.

Role checks repeat the ones in `auth` so services stay safe when called
from scripts or tests; both raise `PermissionDeniedError`.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import analytics, domain, models, repositories
from .attempts import AttemptSession
from .catalog import QuizCatalog, ResultStore
from .config import settings
from .database import engine
from .errors import NotFoundError, PermissionDeniedError, ValidationError
from .utils.csv_import import parse_csv
from .utils.session_store import AttemptSessionStore

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
logger = logging.getLogger("quizboard.services")

QUESTION_FIELDS = ("text", "options", "correct_answer", "subject", "chapter", "co", "difficulty_level", "image_url")


def load_catalog(session: Session) -> QuizCatalog:
    """Fetch every question and quiz into an immutable snapshot."""
    return QuizCatalog(
        questions=tuple(repositories.QuestionRepository(session).list_all()),
        quizzes=tuple(repositories.QuizRepository(session).list_all()),
    )


def load_results(session: Session) -> ResultStore:
    return ResultStore(results=tuple(repositories.ResultRepository(session).list_all()))


def validate_question(data: dict) -> dict:
    """Validate a question payload and return normalized column values.

    Used for single creation, partial updates (after merging with the
    stored question) and every CSV row.
    """
    if not isinstance(data, dict):
        raise ValidationError('question item must be an object')
    text = data.get('text')
    if not text or not isinstance(text, str) or not text.strip():
        raise ValidationError('Please fill in all required fields: text is missing')
    options = data.get('options')
    if not options or not isinstance(options, (list, tuple)) or len(options) < 2:
        raise ValidationError('Please provide at least two options')
    if any(not isinstance(o, str) or not o.strip() for o in options):
        raise ValidationError('Please fill in all required fields: empty option')
    correct = data.get('correct_answer')
    if not correct or not isinstance(correct, str):
        raise ValidationError('Please fill in all required fields: correct_answer is missing')
    if correct not in options:
        raise ValidationError('Correct answer must be one of the options')
    difficulty = (data.get('difficulty_level') or domain.Difficulty.MEDIUM.value)
    if isinstance(difficulty, domain.Difficulty):
        difficulty = difficulty.value
    if difficulty not in {d.value for d in domain.Difficulty}:
        raise ValidationError(f"difficulty_level must be one of easy, medium, hard (got {difficulty!r})")
    return {
        'text': text.strip(),
        'options': list(options),
        'correct_answer': correct,
        'subject': (data.get('subject') or '').strip(),
        'chapter': (data.get('chapter') or '').strip(),
        'co': (data.get('co') or '').strip(),
        'difficulty_level': difficulty,
        'image_url': data.get('image_url') or None,
    }


def _question_columns(q: domain.Question) -> dict:
    return {
        'text': q.text,
        'options': list(q.options),
        'correct_answer': q.correct_answer,
        'subject': q.subject,
        'chapter': q.chapter,
        'co': q.co,
        'difficulty_level': q.difficulty.value,
        'image_url': q.image_url,
    }


def _require_teacher(user: domain.User) -> None:
    if user.user_type is not domain.UserType.TEACHER:
        raise PermissionDeniedError('teacher account required')


def _require_student(user: domain.User) -> None:
    if user.user_type is not domain.UserType.STUDENT:
        raise PermissionDeniedError('student account required')


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, name: str, email: str, password: str, confirm_password: str, user_type: str) -> domain.User:
        """Create a new user with a hashed password.

        Returns the persisted user. Raises `ValidationError` for missing
        fields, an unknown user type, mismatched passwords or a taken email.
        """
        if not name or not name.strip() or not email or not email.strip() or not password:
            raise ValidationError('Please fill in all required fields')
        if user_type not in {t.value for t in domain.UserType}:
            raise ValidationError('user_type must be teacher or student')
        if password != confirm_password:
            raise ValidationError('Passwords do not match')
        email = email.strip().lower()
        if self.user_repo.get_row_by_email(email):
            raise ValidationError('email already registered')
        row = models.User(email=email, name=name.strip(), user_type=user_type, password_hash=PWD_CTX.hash(password))
        user = self.user_repo.create(row)
        logger.info("registered %s user id=%s", user.user_type.value, user.id)
        return user

    def authenticate(self, email: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        row = self.user_repo.get_row_by_email((email or '').strip().lower())
        if not row:
            return None
        if not PWD_CTX.verify(password, row.password_hash):
            return None
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": row.id, "user_type": row.user_type, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class QuestionService:
    """Question bank operations for teachers."""
    def __init__(self, session: Session):
        self.session = session
        self.q_repo = repositories.QuestionRepository(session)
        self.quiz_repo = repositories.QuizRepository(session)

    def list_questions(self) -> List[domain.Question]:
        return self.q_repo.list_all()

    def create_question(self, owner: domain.User, data: dict) -> domain.Question:
        _require_teacher(owner)
        cols = validate_question(data)
        return self.q_repo.create(models.Question(created_by=owner.id, **cols))

    def create_many(self, owner: domain.User, items: Iterable[dict], dry_run: bool = False) -> dict:
        """Validate each item and insert the valid ones in one batch.

        Returns `{created, valid, ids, errors}`; invalid items are reported with
        their index and skipped.
        """
        _require_teacher(owner)
        rows = []
        errors = []
        for idx, item in enumerate(items):
            try:
                cols = validate_question(item)
            except ValidationError as e:
                errors.append({'index': idx, 'error': e.detail})
                continue
            rows.append(models.Question(created_by=owner.id, **cols))
        created = [] if dry_run or not rows else self.q_repo.create_many(rows)
        logger.info("bulk import by teacher=%s created=%d errors=%d", owner.id, len(created), len(errors))
        return {'created': len(created), 'valid': len(rows), 'ids': [q.id for q in created], 'errors': errors}

    def import_csv(self, owner: domain.User, file_bytes: bytes, dry_run: bool = False) -> dict:
        return self.create_many(owner, parse_csv(file_bytes), dry_run=dry_run)

    def _owned(self, owner: domain.User, question_id: int) -> domain.Question:
        _require_teacher(owner)
        q = self.q_repo.get(question_id)
        if not q:
            raise NotFoundError(f'question not found: {question_id}')
        if q.created_by != owner.id:
            raise PermissionDeniedError('only the owning teacher may change this question')
        return q

    def update_question(self, owner: domain.User, question_id: int, changes: dict) -> domain.Question:
        """Apply a partial update; the merged question is re-validated."""
        current = self._owned(owner, question_id)
        patch = {k: v for k, v in changes.items() if k in QUESTION_FIELDS and v is not None}
        if 'image_url' in changes and changes['image_url'] == '':
            patch['image_url'] = None
        merged = {**_question_columns(current), **patch}
        cols = validate_question(merged)
        return self.q_repo.update(question_id, cols)

    def delete_question(self, owner: domain.User, question_id: int) -> int:
        """Delete a question and strip it from every quiz.

        Submitted results keep their answer records. Returns the number of
        quizzes that referenced the question.
        """
        self._owned(owner, question_id)
        before = load_catalog(self.session)
        after = before.without_question(question_id)
        changed = [new for old, new in zip(before.quizzes, after.quizzes) if new.question_ids != old.question_ids]
        touched = self.quiz_repo.save_question_lists(changed)
        self.q_repo.delete(question_id)
        logger.info("deleted question=%s stripped from %d quizzes", question_id, touched)
        return touched


class QuizService:
    """Quiz creation and maintenance."""
    def __init__(self, session: Session, store: Optional[AttemptSessionStore] = None):
        self.session = session
        self.store = store
        self.quiz_repo = repositories.QuizRepository(session)
        self.q_repo = repositories.QuestionRepository(session)
        self.result_repo = repositories.ResultRepository(session)

    def list_for_user(self, user: domain.User) -> List[domain.Quiz]:
        """Teachers see their own quizzes; students see active ones."""
        catalog = load_catalog(self.session)
        if user.user_type is domain.UserType.TEACHER:
            return catalog.quizzes_by_teacher(user.id)
        return catalog.active_quizzes()

    def get_for_user(self, user: domain.User, quiz_id: int) -> domain.Quiz:
        quiz = self.quiz_repo.get(quiz_id)
        if not quiz:
            raise NotFoundError(f'quiz not found: {quiz_id}')
        if user.user_type is domain.UserType.TEACHER and quiz.teacher_id != user.id:
            raise PermissionDeniedError('only the owning teacher may view this quiz')
        if user.user_type is domain.UserType.STUDENT and not quiz.active:
            raise NotFoundError(f'quiz not found: {quiz_id}')
        return quiz

    def _check_question_ids(self, question_ids: List[int]) -> None:
        if not question_ids:
            raise ValidationError('Please select at least one question')
        known = {q.id for q in self.q_repo.list_all()}
        unknown = sorted({qid for qid in question_ids if qid not in known})
        if unknown:
            raise ValidationError(f'unknown question ids: {unknown}')

    def _check_time_limit(self, time_limit) -> None:
        if not isinstance(time_limit, int) or isinstance(time_limit, bool) or time_limit < 1:
            raise ValidationError('time_limit must be a positive number of minutes')

    def create_quiz(self, teacher: domain.User, title: str, question_ids: List[int], time_limit: int, active: bool = True) -> domain.Quiz:
        """Create a quiz worth one mark per selected question."""
        _require_teacher(teacher)
        if not title or not title.strip():
            raise ValidationError('Please provide a quiz title')
        self._check_question_ids(question_ids)
        self._check_time_limit(time_limit)
        row = models.Quiz(
            title=title.strip(),
            teacher_id=teacher.id,
            teacher_name=teacher.name,
            question_ids=list(question_ids),
            time_limit=time_limit,
            total_marks=len(question_ids),
            active=active,
        )
        quiz = self.quiz_repo.create(row)
        logger.info("created quiz=%s teacher=%s questions=%d", quiz.id, teacher.id, len(question_ids))
        return quiz

    def _owned(self, teacher: domain.User, quiz_id: int) -> domain.Quiz:
        _require_teacher(teacher)
        quiz = self.quiz_repo.get(quiz_id)
        if not quiz:
            raise NotFoundError(f'quiz not found: {quiz_id}')
        if quiz.teacher_id != teacher.id:
            raise PermissionDeniedError('only the owning teacher may change this quiz')
        return quiz

    def update_quiz(self, teacher: domain.User, quiz_id: int, changes: dict) -> domain.Quiz:
        """Update title, question list, time limit and/or active flag.

        Replacing the question list also resets total marks to its length.
        """
        self._owned(teacher, quiz_id)
        updates = {}
        if changes.get('title') is not None:
            if not changes['title'].strip():
                raise ValidationError('Please provide a quiz title')
            updates['title'] = changes['title'].strip()
        if changes.get('question_ids') is not None:
            self._check_question_ids(changes['question_ids'])
            updates['question_ids'] = list(changes['question_ids'])
            updates['total_marks'] = len(changes['question_ids'])
        if changes.get('time_limit') is not None:
            self._check_time_limit(changes['time_limit'])
            updates['time_limit'] = changes['time_limit']
        if changes.get('active') is not None:
            updates['active'] = bool(changes['active'])
        return self.quiz_repo.update(quiz_id, updates)

    def delete_quiz(self, teacher: domain.User, quiz_id: int) -> int:
        """Delete a quiz after removing its results; returns results removed.

        Open attempt sessions for the quiz are dropped first so no late
        submission can write a result for it.
        """
        self._owned(teacher, quiz_id)
        if self.store is not None:
            dropped = self.store.discard_quiz(quiz_id)
            if dropped:
                logger.info("discarded %d attempt sessions of quiz=%s", dropped, quiz_id)
        before = load_results(self.session)
        kept = {r.id for r in before.without_quiz(quiz_id).results}
        removed = self.result_repo.delete_many(r.id for r in before.results if r.id not in kept)
        self.quiz_repo.delete(quiz_id)
        logger.info("deleted quiz=%s with %d results", quiz_id, removed)
        return removed


class ResultService:
    """Result lookups plus the two post-submission notes."""
    def __init__(self, session: Session):
        self.session = session
        self.result_repo = repositories.ResultRepository(session)
        self.quiz_repo = repositories.QuizRepository(session)

    def list_for_user(self, user: domain.User) -> List[domain.StudentResult]:
        """Students see their own results; teachers see results of their quizzes."""
        store = load_results(self.session)
        if user.user_type is domain.UserType.STUDENT:
            return store.by_student(user.id)
        own = {q.id for q in self.quiz_repo.list_all() if q.teacher_id == user.id}
        return [r for r in store.results if r.quiz_id in own]

    def get_for_user(self, user: domain.User, result_id: int) -> domain.StudentResult:
        result = self.result_repo.get(result_id)
        if not result:
            raise NotFoundError(f'result not found: {result_id}')
        if user.user_type is domain.UserType.STUDENT:
            if result.student_id != user.id:
                raise PermissionDeniedError('not your result')
        else:
            quiz = self.quiz_repo.get(result.quiz_id)
            if not quiz or quiz.teacher_id != user.id:
                raise PermissionDeniedError('result belongs to another teacher')
        return result

    def _save_notes(self, current: domain.StudentResult, **notes) -> domain.StudentResult:
        updated = ResultStore(results=(current,)).with_result_updated(current.id, **notes)
        return self.result_repo.save_notes(updated.get(current.id))

    def set_remarks(self, teacher: domain.User, result_id: int, remarks: str) -> domain.StudentResult:
        _require_teacher(teacher)
        return self._save_notes(self.get_for_user(teacher, result_id), remarks=remarks)

    def set_feedback(self, student: domain.User, result_id: int, feedback: str) -> domain.StudentResult:
        _require_student(student)
        return self._save_notes(self.get_for_user(student, result_id), feedback=feedback)


def _persist_result(draft: domain.ResultDraft) -> domain.StudentResult:
    """Default submitter: write the result in its own database session."""
    with Session(engine) as session:
        return repositories.ResultRepository(session).create(draft)


class AttemptService:
    """Start and look up attempt sessions."""
    def __init__(self, session: Session, store: AttemptSessionStore, submitter: Callable = _persist_result):
        self.session = session
        self.store = store
        self.submitter = submitter

    def start(self, student: domain.User, quiz_id: int) -> AttemptSession:
        """Begin (or resume) the student's attempt at `quiz_id`.

        A live session for the same pair is returned as-is. An existing
        result raises `AlreadyAttemptedError`; an unknown, inactive or empty
        quiz raises `NotFoundError` instead of leaving a session loading.
        """
        _require_student(student)
        live = self.store.find_live(student.id, quiz_id)
        if live is not None:
            return live
        catalog = load_catalog(self.session)
        quiz = catalog.get_quiz(quiz_id)
        if quiz is None or not quiz.active:
            raise NotFoundError(f'quiz not found: {quiz_id}')
        results = ResultStore(results=tuple(
            r for r in repositories.ResultRepository(self.session).list_by_quiz(quiz_id)
        ))
        attempt = AttemptSession(student.id, student.name, quiz_id, submitter=self.submitter)
        if not attempt.start(catalog, results):
            raise NotFoundError(f'quiz {quiz_id} has no questions')
        return self.store.add(attempt)

    def get(self, student: domain.User, session_id: str) -> AttemptSession:
        attempt = self.store.get(session_id)
        if attempt is None:
            raise NotFoundError(f'attempt session not found: {session_id}')
        if attempt.student_id != student.id:
            raise PermissionDeniedError('not your attempt')
        return attempt


class AnalyticsService:
    """Teacher analytics and dashboard summaries."""
    def __init__(self, session: Session):
        self.session = session

    def quiz_report(self, teacher: domain.User, quiz_id: int, ranking: analytics.RankingMode = analytics.RankingMode.DENSE) -> dict:
        quiz = QuizService(self.session).get_for_user(teacher, quiz_id)
        catalog = load_catalog(self.session)
        results = load_results(self.session).by_quiz(quiz_id)
        return analytics.quiz_report(quiz, catalog.resolve_questions(quiz), results, ranking)

    def overall_leaderboard(self, teacher: domain.User) -> List[analytics.OverallLeaderboardRow]:
        _require_teacher(teacher)
        return analytics.overall_leaderboard(load_results(self.session).results)

    def teacher_dashboard(self, teacher: domain.User) -> dict:
        _require_teacher(teacher)
        catalog = load_catalog(self.session)
        quizzes = catalog.quizzes_by_teacher(teacher.id)
        own = {q.id for q in quizzes}
        results = [r for r in load_results(self.session).results if r.quiz_id in own]
        return analytics.teacher_summary(quizzes, results)

    def student_dashboard(self, student: domain.User) -> dict:
        _require_student(student)
        catalog = load_catalog(self.session)
        results = load_results(self.session).by_student(student.id)
        summary = analytics.student_summary(catalog.active_quizzes(), results)
        summary['results'] = sorted(results, key=lambda r: r.submitted_at or datetime.min, reverse=True)
        return summary
