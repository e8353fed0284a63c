"""Attempt session: the per-student, per-quiz state machine.

A session moves `loading -> in_progress -> submitted`. While in progress
a countdown runs; when it reaches zero the session becomes `expired` and
is submitted automatically with whatever answers were captured.
Persisting the scored attempt is delegated to a `submitter` callback so
the state machine itself has no database dependency.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional
from uuid import uuid4

from . import scoring
from .catalog import QuizCatalog, ResultStore
from .domain import Question, Quiz, ResultDraft, StudentResult
from .errors import (
    AlreadyAttemptedError,
    EmptySubmissionError,
    SessionStateError,
    ValidationError,
)

logger = logging.getLogger("quizboard.attempts")

Submitter = Callable[[ResultDraft], StudentResult]


class AttemptState(str, Enum):
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    EXPIRED = "expired"
    SUBMITTED = "submitted"


def format_time_left(seconds: int) -> str:
    """Format seconds as zero-padded `mm:ss`."""
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins:02d}:{secs:02d}"


class AttemptSession:
    """Tracks one student's attempt at one quiz."""

    def __init__(
        self,
        student_id: int,
        student_name: str,
        quiz_id: int,
        submitter: Optional[Submitter] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.session_id = session_id or uuid4().hex
        self.student_id = student_id
        self.student_name = student_name
        self.quiz_id = quiz_id
        self._submitter = submitter
        self._state = AttemptState.LOADING
        self._quiz: Quiz | None = None
        self._questions: list[Question] = []
        self._answers: dict[int, str] = {}
        self._index = 0
        self._remaining = 0
        self._result: StudentResult | None = None
        # tick() may run on the ticker thread while a request answers
        self._lock = threading.RLock()

    # -- entry -------------------------------------------------------------

    def start(self, catalog: QuizCatalog, results: ResultStore) -> bool:
        """Load the quiz and begin the countdown.

        Raises `AlreadyAttemptedError` if the student already has a result
        for this quiz. Returns False (and stays `loading`) when the quiz is
        unknown or none of its question ids resolve.
        """
        with self._lock:
            if self._state is not AttemptState.LOADING:
                raise SessionStateError(f"cannot start a session that is {self._state.value}")
            if results.has_attempt(self.student_id, self.quiz_id):
                raise AlreadyAttemptedError("You have already attempted this quiz.")
            quiz = catalog.get_quiz(self.quiz_id)
            if quiz is None:
                return False
            questions = catalog.resolve_questions(quiz)
            if not questions:
                return False
            self._quiz = quiz
            self._questions = questions
            self._answers = {q.id: "" for q in questions}
            self._index = 0
            self._remaining = quiz.time_limit * 60
            self._state = AttemptState.IN_PROGRESS
            logger.info(
                "attempt started session=%s student=%s quiz=%s questions=%d",
                self.session_id, self.student_id, self.quiz_id, len(questions),
            )
            return True

    # -- transitions -------------------------------------------------------

    def answer(self, question_id: int, choice: str) -> None:
        """Record `choice` for `question_id`; the empty string clears it."""
        with self._lock:
            self._require(AttemptState.IN_PROGRESS)
            question = next((q for q in self._questions if q.id == question_id), None)
            if question is None:
                raise ValidationError(f"question {question_id} is not part of this quiz")
            if choice and choice not in question.options:
                raise ValidationError("answer must be one of the question's options")
            self._answers[question_id] = choice

    def navigate(self, index: int) -> Question:
        with self._lock:
            self._require(AttemptState.IN_PROGRESS)
            if not 0 <= index < len(self._questions):
                raise ValidationError(f"question index {index} out of range")
            self._index = index
            return self._questions[index]

    def next(self) -> Question:
        with self._lock:
            return self.navigate(min(self._index + 1, len(self._questions) - 1))

    def previous(self) -> Question:
        with self._lock:
            return self.navigate(max(self._index - 1, 0))

    def tick(self, seconds: int = 1) -> AttemptState:
        """Advance the countdown; expiry submits automatically."""
        with self._lock:
            if self._state is not AttemptState.IN_PROGRESS:
                return self._state
            self._remaining = max(0, self._remaining - seconds)
            if self._remaining == 0:
                self._state = AttemptState.EXPIRED
                logger.info("attempt expired session=%s", self.session_id)
                self._finalize()
            return self._state

    def submit(self) -> StudentResult:
        """Manually submit the attempt.

        At least one non-empty answer is required unless the session has
        already expired.
        """
        with self._lock:
            if self._state not in (AttemptState.IN_PROGRESS, AttemptState.EXPIRED):
                raise SessionStateError(f"cannot submit a session that is {self._state.value}")
            if self._state is AttemptState.IN_PROGRESS and not any(self._answers.values()):
                raise EmptySubmissionError("Please answer at least one question before submitting.")
            return self._finalize()

    def _finalize(self) -> StudentResult:
        outcome = scoring.score(self._questions, self._answers)
        quiz = self._quiz
        draft = ResultDraft(
            student_id=self.student_id,
            student_name=self.student_name,
            quiz_id=quiz.id,
            quiz_title=quiz.title,
            teacher_name=quiz.teacher_name,
            score=outcome.score,
            total_marks=quiz.total_marks,
            answers=outcome.per_question,
        )
        if self._submitter is None:
            raise SessionStateError("session has no submitter configured")
        # state only changes once the write succeeded
        result = self._submitter(draft)
        self._result = result
        self._state = AttemptState.SUBMITTED
        logger.info(
            "attempt submitted session=%s score=%s/%s",
            self.session_id, result.score, result.total_marks,
        )
        return result

    def _require(self, state: AttemptState) -> None:
        if self._state is not state:
            raise SessionStateError(f"session is {self._state.value}, expected {state.value}")

    # -- read-outs ---------------------------------------------------------

    @property
    def state(self) -> AttemptState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state is AttemptState.SUBMITTED

    @property
    def quiz(self) -> Quiz | None:
        return self._quiz

    @property
    def questions(self) -> list[Question]:
        return list(self._questions)

    @property
    def answers(self) -> dict[int, str]:
        with self._lock:
            return dict(self._answers)

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_question(self) -> Question | None:
        if not self._questions:
            return None
        return self._questions[self._index]

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def time_left(self) -> str:
        return format_time_left(self._remaining)

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self._answers.values() if a)

    @property
    def progress(self) -> float:
        if not self._questions:
            return 0.0
        return (self._index + 1) / len(self._questions) * 100

    @property
    def result(self) -> StudentResult | None:
        return self._result

    def snapshot(self) -> dict:
        """All read-outs taken under one lock, so state and result agree."""
        with self._lock:
            return {
                "session_id": self.session_id,
                "quiz_id": self.quiz_id,
                "title": self._quiz.title if self._quiz else "",
                "state": self._state,
                "current_index": self._index,
                "questions": list(self._questions),
                "answers": dict(self._answers),
                "answered_count": self.answered_count,
                "progress": self.progress,
                "remaining_seconds": self._remaining,
                "time_left": self.time_left,
                "result": self._result,
            }
