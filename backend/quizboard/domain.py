"""Domain entities used by scoring, attempt sessions and analytics.

These are plain immutable dataclasses. Database rows are translated into
them inside the repositories so the core logic never sees ORM objects or
loosely-typed dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class UserType(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"


@dataclass(frozen=True, slots=True)
class User:
    """A registered teacher or student."""

    id: int
    email: str
    name: str
    user_type: UserType


@dataclass(frozen=True, slots=True)
class Question:
    """Multiple-choice question.

    `correct_answer` should equal one of `options`; that is checked when a
    question is created or updated, not guaranteed by the type.
    """

    id: int
    text: str
    options: tuple[str, ...]
    correct_answer: str
    subject: str = ""
    chapter: str = ""
    co: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM
    image_url: str | None = None
    created_by: int | None = None


@dataclass(frozen=True, slots=True)
class Quiz:
    """A teacher-assembled quiz.

    `teacher_name` is a snapshot taken when the quiz is created.
    """

    id: int
    title: str
    teacher_id: int
    teacher_name: str
    question_ids: tuple[int, ...]
    time_limit: int
    total_marks: int
    active: bool = True
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class AnswerRecord:
    """One question outcome inside a submitted result."""

    question_id: int
    answer: str
    correct: bool


@dataclass(frozen=True, slots=True)
class StudentResult:
    """A student's single submission for one quiz.

    Student name, quiz title and teacher name are snapshots frozen at
    submission time.
    """

    id: int
    student_id: int
    student_name: str
    quiz_id: int
    quiz_title: str
    teacher_name: str
    score: int
    total_marks: int
    answers: tuple[AnswerRecord, ...] = ()
    submitted_at: datetime | None = None
    remarks: str = ""
    feedback: str = ""

    @property
    def percentage(self) -> float:
        if self.total_marks <= 0:
            return 0.0
        return self.score * 100 / self.total_marks


@dataclass(frozen=True, slots=True)
class ResultDraft:
    """A scored attempt that has not been persisted yet."""

    student_id: int
    student_name: str
    quiz_id: int
    quiz_title: str
    teacher_name: str
    score: int
    total_marks: int
    answers: tuple[AnswerRecord, ...] = field(default_factory=tuple)
