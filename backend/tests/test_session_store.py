from quizboard.attempts import AttemptSession, AttemptState
from quizboard.catalog import QuizCatalog, ResultStore
from quizboard.errors import AlreadyAttemptedError
from quizboard.utils.session_store import AttemptSessionStore


def _session(questions, quiz, submitter):
    catalog = QuizCatalog(questions=tuple(questions), quizzes=(quiz,))
    s = AttemptSession(student_id=5, student_name="Sam", quiz_id=quiz.id, submitter=submitter)
    s.start(catalog, ResultStore())
    return s


def test_find_live_by_student_and_quiz(questions, quiz):
    store = AttemptSessionStore()
    s = store.add(_session(questions, quiz, None))
    assert store.find_live(5, quiz.id) is s
    assert store.find_live(6, quiz.id) is None
    assert store.get(s.session_id) is s


def test_tick_all_auto_submits_and_survives_rejections(questions, quiz):
    def rejecting(draft):
        raise AlreadyAttemptedError("You have already attempted this quiz.")

    store = AttemptSessionStore()
    bad = store.add(_session(questions, quiz, rejecting))
    assert store.tick_all(60) == 1
    # the rejected write leaves the session expired, not submitted
    assert bad.state is AttemptState.EXPIRED
    assert store.find_live(5, quiz.id) is bad


def test_finished_sessions_are_evicted_after_ttl(questions, quiz):
    from quizboard.domain import StudentResult

    def ok(draft):
        return StudentResult(id=1, student_id=draft.student_id, student_name=draft.student_name,
                             quiz_id=draft.quiz_id, quiz_title=draft.quiz_title,
                             teacher_name=draft.teacher_name, score=draft.score,
                             total_marks=draft.total_marks, answers=draft.answers)

    store = AttemptSessionStore(ttl_seconds=-1)
    s = store.add(_session(questions, quiz, ok))
    store.tick_all(60)
    assert s.state is AttemptState.SUBMITTED
    assert store.find_live(5, quiz.id) is None
    assert store.get(s.session_id) is None


def test_discard():
    store = AttemptSessionStore()
    store.discard("missing")
    assert store.get("missing") is None


def test_discard_quiz_drops_only_that_quizs_sessions(questions, quiz):
    from dataclasses import replace
    store = AttemptSessionStore()
    s = store.add(_session(questions, quiz, None))
    other_quiz = replace(quiz, id=11)
    other = store.add(_session(questions, other_quiz, None))
    assert store.discard_quiz(quiz.id) == 1
    assert store.get(s.session_id) is None
    assert store.get(other.session_id) is other
    # a discarded session is no longer ticked
    assert store.tick_all(60) == 1
