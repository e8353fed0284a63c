"""SQLModel data models.

This module defines the application's database tables using SQLModel.
List-valued fields (question options, a quiz's question ids, a result's
answer records) are stored in JSON columns. Repositories convert these
rows into the dataclasses of `quizboard.domain`.
"""

from typing import List, Optional
from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import SQLModel, Field
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A registered teacher or student.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `user_type`: `teacher` or `student`
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    name: str
    user_type: str = Field(index=True)
    password_hash: str
    created_at: datetime = Field(default_factory=_now)


class Question(SQLModel, table=True):
    """A multiple-choice question in a teacher's bank."""
    __tablename__ = "questions"

    id: Optional[int] = Field(default=None, primary_key=True)
    text: str
    options: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    correct_answer: str
    subject: str = Field(default="", index=True)
    chapter: str = ""
    co: str = ""
    difficulty_level: str = "medium"
    image_url: Optional[str] = None
    created_by: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=_now)


class Quiz(SQLModel, table=True):
    """A quiz assembled from question ids.

    `teacher_name` is copied from the teacher at creation time.
    """
    __tablename__ = "quizzes"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    teacher_id: int = Field(foreign_key="users.id", index=True)
    teacher_name: str = ""
    question_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    time_limit: int
    total_marks: int
    active: bool = True
    created_at: datetime = Field(default_factory=_now)


class StudentResult(SQLModel, table=True):
    """A stored quiz submission.

    One row per (student, quiz); the unique constraint is the
    authoritative guard against a second attempt.
    """
    __tablename__ = "student_results"
    __table_args__ = (UniqueConstraint("student_id", "quiz_id", name="uq_result_student_quiz"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key="users.id", index=True)
    student_name: str = ""
    quiz_id: int = Field(foreign_key="quizzes.id", index=True)
    quiz_title: str = ""
    teacher_name: str = ""
    score: int = 0
    total_marks: int = 0
    answers: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    submitted_at: datetime = Field(default_factory=_now)
    remarks: Optional[str] = None
    feedback: Optional[str] = None
