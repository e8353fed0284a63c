from quizboard.catalog import QuizCatalog, ResultStore

from factories import make_result


def test_without_question_cascades_into_quizzes(questions, quiz):
    catalog = QuizCatalog(questions=tuple(questions), quizzes=(quiz,))
    updated = catalog.without_question(2)
    assert updated.get_question(2) is None
    assert updated.get_quiz(10).question_ids == (1, 3, 4)
    # the previous snapshot is untouched
    assert catalog.get_quiz(10).question_ids == (1, 2, 3, 4)
    assert len(catalog.questions) == 4


def test_lookups(questions, quiz):
    catalog = QuizCatalog(questions=tuple(questions), quizzes=(quiz,))
    assert catalog.quizzes_by_teacher(1) == [quiz]
    assert catalog.quizzes_by_teacher(2) == []
    assert catalog.active_quizzes() == [quiz]
    assert catalog.get_question(9) is None
    assert catalog.get_question(3).correct_answer == "C"


def test_resolve_keeps_duplicates(questions, quiz):
    from dataclasses import replace
    catalog = QuizCatalog(questions=tuple(questions), quizzes=(replace(quiz, question_ids=(1, 1, 2)),))
    assert [q.id for q in catalog.resolve_questions(catalog.get_quiz(10))] == [1, 1, 2]


def test_remarks_round_trip_preserves_everything_else():
    before = make_result(1, student_id=5, quiz_id=10, score=3, total=4)
    store = ResultStore(results=(before,))
    updated = store.with_result_updated(1, remarks="Well done")
    got = updated.get(1)
    assert got.remarks == "Well done"
    assert (got.score, got.answers, got.submitted_at) == (before.score, before.answers, before.submitted_at)
    assert store.get(1).remarks == ""
    assert updated.with_result_updated(1, feedback="Thanks").get(1).remarks == "Well done"


def test_result_lookups_and_quiz_removal():
    store = ResultStore(results=(
        make_result(1, 5, 10, 3, 4),
        make_result(2, 6, 10, 2, 4),
        make_result(3, 5, 11, 1, 4),
    ))
    assert [r.id for r in store.by_student(5)] == [1, 3]
    assert [r.id for r in store.by_quiz(10)] == [1, 2]
    assert store.has_attempt(6, 10)
    assert not store.has_attempt(6, 11)
    assert [r.id for r in store.without_quiz(10).results] == [3]
