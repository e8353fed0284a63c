"""Scoring engine for quiz attempts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from .domain import AnswerRecord, Question


@dataclass(frozen=True, slots=True)
class ScoreOutcome:
    per_question: tuple[AnswerRecord, ...]
    score: int


def score(questions: Iterable[Question], answers: Mapping[int, str]) -> ScoreOutcome:
    """Score `answers` against `questions`.

    Question order is preserved in `per_question`. A missing answer counts
    as the empty string. An answer is correct only if it is exactly equal
    to the question's correct answer (case-sensitive, no trimming). Every
    question is worth one mark regardless of difficulty. The function never
    raises: a question without a usable correct answer simply never matches.
    """
    records = []
    for q in questions:
        given = answers.get(q.id, "") or ""
        expected = getattr(q, "correct_answer", None)
        correct = isinstance(expected, str) and given == expected
        records.append(AnswerRecord(question_id=q.id, answer=given, correct=correct))
    return ScoreOutcome(per_question=tuple(records), score=sum(1 for r in records if r.correct))
