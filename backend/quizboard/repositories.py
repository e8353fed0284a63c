"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
questions, quizzes, results). Rows are translated into the immutable
dataclasses of `quizboard.domain` before they leave this module, so
callers never depend on ORM objects or raw JSON shapes.
"""

import logging
from typing import Iterable, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
from . import domain, models
from .errors import AlreadyAttemptedError, NotFoundError

logger = logging.getLogger("quizboard.repositories")


def _difficulty(value: str) -> domain.Difficulty:
    try:
        return domain.Difficulty(value)
    except ValueError:
        logger.warning("unknown difficulty %r, treating as medium", value)
        return domain.Difficulty.MEDIUM


def user_to_domain(row: models.User) -> domain.User:
    return domain.User(id=row.id, email=row.email, name=row.name, user_type=domain.UserType(row.user_type))


def question_to_domain(row: models.Question) -> domain.Question:
    return domain.Question(
        id=row.id,
        text=row.text,
        options=tuple(str(o) for o in (row.options or [])),
        correct_answer=row.correct_answer,
        subject=row.subject or "",
        chapter=row.chapter or "",
        co=row.co or "",
        difficulty=_difficulty(row.difficulty_level),
        image_url=row.image_url or None,
        created_by=row.created_by,
    )


def quiz_to_domain(row: models.Quiz) -> domain.Quiz:
    return domain.Quiz(
        id=row.id,
        title=row.title,
        teacher_id=row.teacher_id,
        teacher_name=row.teacher_name or "Unknown Teacher",
        question_ids=tuple(int(q) for q in (row.question_ids or [])),
        time_limit=row.time_limit,
        total_marks=row.total_marks,
        active=bool(row.active),
        created_at=row.created_at,
    )


def result_to_domain(row: models.StudentResult) -> domain.StudentResult:
    answers = tuple(
        domain.AnswerRecord(
            question_id=int(a.get("question_id")),
            answer=str(a.get("answer") or ""),
            correct=bool(a.get("correct")),
        )
        for a in (row.answers or [])
        if a.get("question_id") is not None
    )
    return domain.StudentResult(
        id=row.id,
        student_id=row.student_id,
        student_name=row.student_name or "Unknown Student",
        quiz_id=row.quiz_id,
        quiz_title=row.quiz_title or "Unknown Quiz",
        teacher_name=row.teacher_name or "Unknown Teacher",
        score=row.score,
        total_marks=row.total_marks,
        answers=answers,
        submitted_at=row.submitted_at,
        remarks=row.remarks or "",
        feedback=row.feedback or "",
    )


class UserRepository:
    """CRUD operations for `User` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> domain.User:
        """Persist a new user and return it as a domain entity."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user_to_domain(user)

    def get_row_by_email(self, email: str) -> Optional[models.User]:
        """Return the raw row (with password hash) or `None`."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def get_by_email(self, email: str) -> Optional[domain.User]:
        row = self.get_row_by_email(email)
        return user_to_domain(row) if row else None

    def get(self, user_id: int) -> Optional[domain.User]:
        """Get a `User` by primary key."""
        row = self.session.get(models.User, user_id)
        return user_to_domain(row) if row else None


class QuestionRepository:
    """CRUD operations for `Question` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create_many(self, rows: Iterable[models.Question]) -> List[domain.Question]:
        """Insert questions in one transaction and return them in order."""
        rows = list(rows)
        for row in rows:
            self.session.add(row)
        self.session.commit()
        for row in rows:
            self.session.refresh(row)
        return [question_to_domain(r) for r in rows]

    def create(self, row: models.Question) -> domain.Question:
        return self.create_many([row])[0]

    def list_all(self) -> List[domain.Question]:
        rows = self.session.exec(select(models.Question).order_by(models.Question.id)).all()
        return [question_to_domain(r) for r in rows]

    def get(self, question_id: int) -> Optional[domain.Question]:
        row = self.session.get(models.Question, question_id)
        return question_to_domain(row) if row else None

    def update(self, question_id: int, changes: dict) -> Optional[domain.Question]:
        """Apply a partial update; keys are column names."""
        row = self.session.get(models.Question, question_id)
        if not row:
            return None
        for key, value in changes.items():
            setattr(row, key, value)
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return question_to_domain(row)

    def delete(self, question_id: int) -> bool:
        row = self.session.get(models.Question, question_id)
        if not row:
            return False
        self.session.delete(row)
        self.session.commit()
        return True


class QuizRepository:
    """CRUD operations for `Quiz` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, row: models.Quiz) -> domain.Quiz:
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return quiz_to_domain(row)

    def list_all(self) -> List[domain.Quiz]:
        rows = self.session.exec(select(models.Quiz).order_by(models.Quiz.id)).all()
        return [quiz_to_domain(r) for r in rows]

    def get(self, quiz_id: int) -> Optional[domain.Quiz]:
        row = self.session.get(models.Quiz, quiz_id)
        return quiz_to_domain(row) if row else None

    def update(self, quiz_id: int, changes: dict) -> Optional[domain.Quiz]:
        row = self.session.get(models.Quiz, quiz_id)
        if not row:
            return None
        for key, value in changes.items():
            setattr(row, key, value)
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return quiz_to_domain(row)

    def save_question_lists(self, quizzes: Iterable[domain.Quiz]) -> int:
        """Write the question id list of each given quiz; returns rows written."""
        written = 0
        for quiz in quizzes:
            row = self.session.get(models.Quiz, quiz.id)
            if not row:
                continue
            # a new list object flags the JSON column dirty
            row.question_ids = list(quiz.question_ids)
            self.session.add(row)
            written += 1
        self.session.commit()
        return written

    def delete(self, quiz_id: int) -> bool:
        row = self.session.get(models.Quiz, quiz_id)
        if not row:
            return False
        self.session.delete(row)
        self.session.commit()
        return True


class ResultRepository:
    """Persist and query `StudentResult` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, draft: domain.ResultDraft) -> domain.StudentResult:
        """Insert a result.

        Raises `NotFoundError` if the quiz no longer exists and
        `AlreadyAttemptedError` for a duplicate (student, quiz).
        """
        if self.session.get(models.Quiz, draft.quiz_id) is None:
            raise NotFoundError(f"quiz not found: {draft.quiz_id}")
        row = models.StudentResult(
            student_id=draft.student_id,
            student_name=draft.student_name,
            quiz_id=draft.quiz_id,
            quiz_title=draft.quiz_title,
            teacher_name=draft.teacher_name,
            score=draft.score,
            total_marks=draft.total_marks,
            answers=[
                {"question_id": a.question_id, "answer": a.answer, "correct": a.correct}
                for a in draft.answers
            ],
        )
        self.session.add(row)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            # the quiz may have been deleted between the check and the commit
            if self.session.get(models.Quiz, draft.quiz_id) is None:
                raise NotFoundError(f"quiz not found: {draft.quiz_id}") from exc
            raise AlreadyAttemptedError("You have already attempted this quiz.") from exc
        self.session.refresh(row)
        return result_to_domain(row)

    def list_all(self) -> List[domain.StudentResult]:
        rows = self.session.exec(select(models.StudentResult).order_by(models.StudentResult.id)).all()
        return [result_to_domain(r) for r in rows]

    def list_by_quiz(self, quiz_id: int) -> List[domain.StudentResult]:
        stmt = select(models.StudentResult).where(models.StudentResult.quiz_id == quiz_id).order_by(models.StudentResult.id)
        return [result_to_domain(r) for r in self.session.exec(stmt).all()]

    def get(self, result_id: int) -> Optional[domain.StudentResult]:
        row = self.session.get(models.StudentResult, result_id)
        return result_to_domain(row) if row else None

    def save_notes(self, result: domain.StudentResult) -> Optional[domain.StudentResult]:
        """Write the remarks and feedback of `result`; no other column changes."""
        row = self.session.get(models.StudentResult, result.id)
        if not row:
            return None
        row.remarks = result.remarks
        row.feedback = result.feedback
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return result_to_domain(row)

    def delete_many(self, result_ids: Iterable[int]) -> int:
        """Delete results by id; returns how many were removed."""
        removed = 0
        for result_id in result_ids:
            row = self.session.get(models.StudentResult, result_id)
            if row:
                self.session.delete(row)
                removed += 1
        self.session.commit()
        return removed
