"""Analytics aggregation over submitted results.

All functions are pure: they take the question set and result records
already loaded for a quiz and recompute everything on each call.
Percentages are rounded to one decimal place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Sequence

from .domain import Difficulty, Question, Quiz, StudentResult

QUESTION_LABEL_LENGTH = 30

SCORE_BANDS: tuple[tuple[str, float], ...] = (
    ("0-20%", 20),
    ("21-40%", 40),
    ("41-60%", 60),
    ("61-80%", 80),
    ("81-100%", float("inf")),
)

PERFORMANCE_REMARKS: tuple[tuple[float, str], ...] = (
    (90, "Excellent"),
    (80, "Very Good"),
    (70, "Good"),
    (60, "Satisfactory"),
    (50, "Average"),
    (40, "Below Average"),
)


class RankingMode(str, Enum):
    # distinct consecutive ranks, ties broken by input order
    DENSE = "dense"
    # equal percentages share a rank; the next rank skips ahead
    COMPETITION = "competition"


@dataclass(frozen=True, slots=True)
class AccuracyRow:
    key: str
    label: str
    answered: int
    correct: int
    accuracy: float


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    rank: int
    result_id: int
    student_id: int
    student_name: str
    score: int
    total_marks: int
    percentage: float


@dataclass(frozen=True, slots=True)
class OverallLeaderboardRow:
    student_id: int
    student_name: str
    total_score: int
    total_marks: int
    quizzes_taken: int
    average_percentage: float


def _pct(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 1)


def _answer_for(result: StudentResult, question_id: int):
    return next((a for a in result.answers if a.question_id == question_id), None)


def _accuracy_by(
    questions: Sequence[Question],
    results: Sequence[StudentResult],
    key: Callable[[Question], str],
) -> list[AccuracyRow]:
    counts: dict[str, list[int]] = {}
    for q in questions:
        tag = key(q)
        if not tag:
            continue
        bucket = counts.setdefault(tag, [0, 0])
        for r in results:
            a = _answer_for(r, q.id)
            if a is None:
                continue
            bucket[0] += 1
            if a.correct:
                bucket[1] += 1
    return [
        AccuracyRow(key=tag, label=tag, answered=answered, correct=correct, accuracy=_pct(correct, answered))
        for tag, (answered, correct) in counts.items()
        if answered > 0
    ]


def accuracy_by_course_outcome(questions: Sequence[Question], results: Sequence[StudentResult]) -> list[AccuracyRow]:
    """Accuracy of answered instances grouped by course-outcome tag."""
    return _accuracy_by(questions, results, lambda q: q.co)


def accuracy_by_chapter(questions: Sequence[Question], results: Sequence[StudentResult]) -> list[AccuracyRow]:
    """Accuracy of answered instances grouped by chapter."""
    return _accuracy_by(questions, results, lambda q: q.chapter)


def question_label(text: str) -> str:
    if not text:
        return "Question"
    return text[:QUESTION_LABEL_LENGTH] + "..."


def question_accuracy(questions: Sequence[Question], results: Sequence[StudentResult]) -> list[AccuracyRow]:
    """Per-question accuracy keyed by question id.

    Duplicate ids in the question set are reported once.
    """
    rows = []
    seen = set()
    for q in questions:
        if q.id in seen:
            continue
        seen.add(q.id)
        answered = correct = 0
        for r in results:
            a = _answer_for(r, q.id)
            if a is None:
                continue
            answered += 1
            correct += 1 if a.correct else 0
        rows.append(AccuracyRow(
            key=str(q.id),
            label=question_label(q.text),
            answered=answered,
            correct=correct,
            accuracy=_pct(correct, answered),
        ))
    return rows


def difficulty_distribution(questions: Iterable[Question]) -> dict[str, int]:
    """Count the quiz's questions per difficulty level."""
    dist = {d.value: 0 for d in Difficulty}
    for q in questions:
        level = q.difficulty.value if isinstance(q.difficulty, Difficulty) else str(q.difficulty)
        if level in dist:
            dist[level] += 1
    return dist


def score_band(percentage: float) -> str:
    for label, upper in SCORE_BANDS:
        if percentage <= upper:
            return label
    return SCORE_BANDS[-1][0]


def score_distribution(results: Iterable[StudentResult]) -> dict[str, int]:
    """Histogram of result percentages over the five fixed bands."""
    dist = {label: 0 for label, _ in SCORE_BANDS}
    for r in results:
        dist[score_band(r.percentage)] += 1
    return dist


def quiz_leaderboard(
    results: Sequence[StudentResult],
    ranking: RankingMode = RankingMode.DENSE,
) -> list[LeaderboardRow]:
    """Rank a quiz's results by percentage, highest first.

    The sort is stable, so equal percentages keep their input order.
    """
    ordered = sorted(results, key=lambda r: r.percentage, reverse=True)
    rows = []
    prev_pct = None
    rank = 0
    for pos, r in enumerate(ordered, start=1):
        pct = r.percentage
        if ranking is RankingMode.DENSE or pct != prev_pct:
            rank = pos
        prev_pct = pct
        rows.append(LeaderboardRow(
            rank=rank,
            result_id=r.id,
            student_id=r.student_id,
            student_name=r.student_name,
            score=r.score,
            total_marks=r.total_marks,
            percentage=round(pct, 1),
        ))
    return rows


def overall_leaderboard(results: Iterable[StudentResult]) -> list[OverallLeaderboardRow]:
    """Aggregate every result per student and rank by overall percentage."""
    totals: dict[int, dict] = {}
    for r in results:
        entry = totals.get(r.student_id)
        if entry is None:
            entry = {"student_name": r.student_name, "score": 0, "marks": 0, "taken": 0}
            totals[r.student_id] = entry
        entry["score"] += r.score
        entry["marks"] += r.total_marks
        entry["taken"] += 1
    rows = [
        OverallLeaderboardRow(
            student_id=sid,
            student_name=e["student_name"],
            total_score=e["score"],
            total_marks=e["marks"],
            quizzes_taken=e["taken"],
            average_percentage=_pct(e["score"], e["marks"]),
        )
        for sid, e in totals.items()
    ]
    return sorted(rows, key=lambda row: row.average_percentage, reverse=True)


def performance_remark(percentage: float) -> str:
    for threshold, remark in PERFORMANCE_REMARKS:
        if percentage >= threshold:
            return remark
    return "Poor"


def average_percentage(results: Sequence[StudentResult]) -> float:
    if not results:
        return 0.0
    return round(sum(r.percentage for r in results) / len(results), 1)


def quiz_report(quiz: Quiz, questions: Sequence[Question], results: Sequence[StudentResult],
                ranking: RankingMode = RankingMode.DENSE) -> dict:
    """Bundle every per-quiz aggregate into one payload."""
    return {
        "quiz_id": quiz.id,
        "title": quiz.title,
        "attempts": len(results),
        "average_percentage": average_percentage(results),
        "course_outcomes": accuracy_by_course_outcome(questions, results),
        "chapters": accuracy_by_chapter(questions, results),
        "questions": question_accuracy(questions, results),
        "difficulty": difficulty_distribution(questions),
        "score_bands": score_distribution(results),
        "leaderboard": quiz_leaderboard(results, ranking),
    }


def teacher_summary(quizzes: Sequence[Quiz], results: Sequence[StudentResult]) -> dict:
    """Headline numbers for a teacher's dashboard."""
    return {
        "total_quizzes": len(quizzes),
        "active_quizzes": sum(1 for q in quizzes if q.active),
        "students_attempted": len({r.student_id for r in results}),
        "average_percentage": average_percentage(results),
    }


def student_summary(active_quizzes: Sequence[Quiz], results: Sequence[StudentResult]) -> dict:
    """Headline numbers for a student's dashboard."""
    completed = {r.quiz_id for r in results}
    return {
        "pending_quizzes": [q for q in active_quizzes if q.id not in completed],
        "completed": len(results),
        "average_percentage": average_percentage(results),
        "best_percentage": round(max((r.percentage for r in results), default=0.0), 1),
    }
