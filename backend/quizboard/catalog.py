"""Immutable in-memory snapshots of questions, quizzes and results.

`QuizCatalog` and `ResultStore` hold the collections loaded from the
database. They never mutate in place: update methods return a new
instance, and the service layer writes back only the rows that differ
between the two snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from .domain import Question, Quiz, StudentResult


@dataclass(frozen=True)
class QuizCatalog:
    """Questions and quizzes with derived lookups."""

    questions: tuple[Question, ...] = ()
    quizzes: tuple[Quiz, ...] = ()

    def get_question(self, question_id: int) -> Optional[Question]:
        return next((q for q in self.questions if q.id == question_id), None)

    def get_quiz(self, quiz_id: int) -> Optional[Quiz]:
        return next((q for q in self.quizzes if q.id == quiz_id), None)

    def quizzes_by_teacher(self, teacher_id: int) -> list[Quiz]:
        return [q for q in self.quizzes if q.teacher_id == teacher_id]

    def active_quizzes(self) -> list[Quiz]:
        return [q for q in self.quizzes if q.active]

    def resolve_questions(self, quiz: Quiz) -> list[Question]:
        """Map the quiz's question ids to questions, dropping unknown ids.

        Duplicate ids in the quiz resolve to the same question twice.
        """
        by_id = {q.id: q for q in self.questions}
        return [by_id[qid] for qid in quiz.question_ids if qid in by_id]

    def without_question(self, question_id: int) -> "QuizCatalog":
        """Remove a question and strip its id from every quiz.

        Quizzes keep their order, so the result can be zipped against
        `self.quizzes` to find the ones that changed.
        """
        quizzes = tuple(
            replace(z, question_ids=tuple(qid for qid in z.question_ids if qid != question_id))
            if question_id in z.question_ids else z
            for z in self.quizzes
        )
        return QuizCatalog(
            questions=tuple(q for q in self.questions if q.id != question_id),
            quizzes=quizzes,
        )


@dataclass(frozen=True)
class ResultStore:
    """Submitted results with lookups by student and quiz."""

    results: tuple[StudentResult, ...] = ()

    def get(self, result_id: int) -> Optional[StudentResult]:
        return next((r for r in self.results if r.id == result_id), None)

    def by_student(self, student_id: int) -> list[StudentResult]:
        return [r for r in self.results if r.student_id == student_id]

    def by_quiz(self, quiz_id: int) -> list[StudentResult]:
        return [r for r in self.results if r.quiz_id == quiz_id]

    def find_attempt(self, student_id: int, quiz_id: int) -> Optional[StudentResult]:
        return next(
            (r for r in self.results if r.student_id == student_id and r.quiz_id == quiz_id),
            None,
        )

    def has_attempt(self, student_id: int, quiz_id: int) -> bool:
        return self.find_attempt(student_id, quiz_id) is not None

    def with_result_updated(
        self,
        result_id: int,
        *,
        remarks: Optional[str] = None,
        feedback: Optional[str] = None,
    ) -> "ResultStore":
        """Patch remarks and/or feedback; every other field is untouched."""
        changes = {}
        if remarks is not None:
            changes["remarks"] = remarks
        if feedback is not None:
            changes["feedback"] = feedback
        return ResultStore(
            results=tuple(replace(r, **changes) if r.id == result_id else r for r in self.results)
        )

    def without_quiz(self, quiz_id: int) -> "ResultStore":
        return ResultStore(results=tuple(r for r in self.results if r.quiz_id != quiz_id))
