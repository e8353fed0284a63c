import io
import pytest
import uuid
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session
from quizboard import models, services
from quizboard.database import engine
from quizboard.domain import ResultDraft
from quizboard.errors import NotFoundError
from quizboard.main import app, attempt_store
from quizboard.repositories import ResultRepository

client = TestClient(app)


def _user(user_type, name=None):
    email = f"{user_type}-{uuid.uuid4().hex[:8]}@example.com"
    name = name or f"{user_type} {email[:12]}"
    r = client.post('/auth/register', json={
        'name': name, 'email': email, 'password': 'pw', 'confirm_password': 'pw', 'user_type': user_type,
    })
    assert r.status_code == 200
    token = client.post('/auth/login', json={'email': email, 'password': 'pw'}).json()['access_token']
    return r.json(), {'Authorization': f'Bearer {token}'}


def _question(headers, correct='B', co='CO1', chapter='Algebra', difficulty='easy'):
    r = client.post('/questions', headers=headers, json={
        'text': f'What is the answer to question {uuid.uuid4().hex[:6]}?',
        'options': ['A', 'B', 'C', 'D'], 'correct_answer': correct,
        'subject': 'Math', 'chapter': chapter, 'co': co, 'difficulty_level': difficulty,
    })
    assert r.status_code == 201
    return r.json()


def _quiz(headers, question_ids, title='Weekly quiz'):
    r = client.post('/quizzes', headers=headers, json={'title': title, 'question_ids': question_ids, 'time_limit': 5})
    assert r.status_code == 201
    return r.json()


def _attempt(headers, quiz_id, answers):
    r = client.post(f'/quizzes/{quiz_id}/attempts', headers=headers)
    assert r.status_code == 201
    sid = r.json()['session_id']
    for qid, choice in answers.items():
        r = client.put(f'/attempts/{sid}/answers', headers=headers, json={'question_id': qid, 'answer': choice})
        assert r.status_code == 200
    r = client.post(f'/attempts/{sid}/submit', headers=headers)
    assert r.status_code == 200
    return r.json()


def test_full_attempt_flow_and_single_attempt_guard():
    teacher, th = _user('teacher', 'Ms Teacher')
    q1 = _question(th, correct='B')
    q2 = _question(th, correct='C', co='CO2', chapter='Geometry', difficulty='hard')
    quiz = _quiz(th, [q1['id'], q2['id']])
    assert quiz['total_marks'] == 2
    assert quiz['teacher_name'] == 'Ms Teacher'

    student, sh = _user('student', 'Sam')
    listed = client.get('/quizzes', headers=sh).json()
    assert quiz['id'] in [q['id'] for q in listed]

    r = client.post(f"/quizzes/{quiz['id']}/attempts", headers=sh)
    assert r.status_code == 201
    body = r.json()
    assert body['state'] == 'in_progress'
    assert body['time_left'] == '05:00'
    assert 'correct_answer' not in body['questions'][0]
    sid = body['session_id']

    # resuming returns the same live session
    again = client.post(f"/quizzes/{quiz['id']}/attempts", headers=sh)
    assert again.json()['session_id'] == sid

    empty = client.post(f'/attempts/{sid}/submit', headers=sh)
    assert empty.status_code == 400

    client.put(f'/attempts/{sid}/answers', headers=sh, json={'question_id': q1['id'], 'answer': 'B'})
    bad = client.put(f'/attempts/{sid}/answers', headers=sh, json={'question_id': q2['id'], 'answer': 'Z'})
    assert bad.status_code == 400
    nav = client.post(f'/attempts/{sid}/navigate', headers=sh, json={'direction': 'next'})
    assert nav.json()['current_index'] == 1
    assert nav.json()['answers'][str(q1['id'])] == 'B'

    done = client.post(f'/attempts/{sid}/submit', headers=sh).json()
    assert done['state'] == 'submitted'
    assert done['result']['score'] == 1
    assert done['result']['total_marks'] == 2
    assert done['result']['percentage'] == 50.0
    assert done['result']['remark'] == 'Average'

    dup = client.post(f"/quizzes/{quiz['id']}/attempts", headers=sh)
    assert dup.status_code == 409

    results = client.get('/results', headers=sh).json()
    assert [r['quiz_id'] for r in results] == [quiz['id']]
    assert results[0]['quiz_title'] == 'Weekly quiz'


def test_remarks_and_feedback_keep_score():
    _, th = _user('teacher')
    q = _question(th)
    quiz = _quiz(th, [q['id']])
    _, sh = _user('student')
    result = _attempt(sh, quiz['id'], {q['id']: 'B'})['result']

    r = client.patch(f"/results/{result['id']}/remarks", headers=th, json={'remarks': 'Well done'})
    assert r.status_code == 200
    r = client.patch(f"/results/{result['id']}/feedback", headers=sh, json={'feedback': 'Fun quiz'})
    assert r.status_code == 200
    got = client.get(f"/results/{result['id']}", headers=sh).json()
    assert got['remarks'] == 'Well done'
    assert got['feedback'] == 'Fun quiz'
    assert got['score'] == result['score']
    assert got['answers'] == result['answers']

    # students cannot write remarks, other teachers cannot see the result
    assert client.patch(f"/results/{result['id']}/remarks", headers=sh, json={'remarks': 'x'}).status_code == 403
    _, other = _user('teacher')
    assert client.get(f"/results/{result['id']}", headers=other).status_code == 403


def test_delete_quiz_removes_its_results():
    _, th = _user('teacher')
    q = _question(th)
    quiz = _quiz(th, [q['id']])
    students = [_user('student')[1] for _ in range(3)]
    for sh in students:
        _attempt(sh, quiz['id'], {q['id']: 'A'})
    r = client.delete(f"/quizzes/{quiz['id']}", headers=th)
    assert r.status_code == 200
    assert r.json()['results_removed'] == 3
    assert client.get(f"/quizzes/{quiz['id']}", headers=th).status_code == 404
    assert client.get('/results', headers=students[0]).json() == []


def test_delete_question_strips_it_from_quizzes():
    _, th = _user('teacher')
    q1 = _question(th)
    q2 = _question(th)
    quiz = _quiz(th, [q1['id'], q2['id'], q1['id']])
    other = _quiz(th, [q2['id']], title='Untouched')
    r = client.delete(f"/questions/{q1['id']}", headers=th)
    assert r.json()['quizzes_updated'] == 1
    assert client.get(f"/quizzes/{quiz['id']}", headers=th).json()['question_ids'] == [q2['id']]
    assert client.get(f"/quizzes/{other['id']}", headers=th).json()['question_ids'] == [q2['id']]
    assert client.delete(f"/questions/{q1['id']}", headers=th).status_code == 404


def test_question_update_revalidates():
    _, th = _user('teacher')
    q = _question(th, correct='B')
    r = client.patch(f"/questions/{q['id']}", headers=th, json={'options': ['X', 'Y']})
    assert r.status_code == 400
    r = client.patch(f"/questions/{q['id']}", headers=th, json={'options': ['X', 'Y'], 'correct_answer': 'Y'})
    assert r.status_code == 200
    assert r.json()['correct_answer'] == 'Y'
    _, other = _user('teacher')
    assert client.patch(f"/questions/{q['id']}", headers=other, json={'co': 'CO9'}).status_code == 403


def test_quiz_validation():
    _, th = _user('teacher')
    q = _question(th)
    r = client.post('/quizzes', headers=th, json={'title': ' ', 'question_ids': [q['id']]})
    assert r.json()['detail'] == 'Please provide a quiz title'
    r = client.post('/quizzes', headers=th, json={'title': 'T', 'question_ids': []})
    assert r.json()['detail'] == 'Please select at least one question'
    r = client.post('/quizzes', headers=th, json={'title': 'T', 'question_ids': [q['id']], 'time_limit': 0})
    assert r.status_code == 400


def test_inactive_quiz_cannot_be_started():
    _, th = _user('teacher')
    q = _question(th)
    quiz = _quiz(th, [q['id']])
    client.patch(f"/quizzes/{quiz['id']}", headers=th, json={'active': False})
    _, sh = _user('student')
    assert client.post(f"/quizzes/{quiz['id']}/attempts", headers=sh).status_code == 404


def test_analytics_and_dashboards():
    _, th = _user('teacher')
    q1 = _question(th, correct='B', co='CO1', chapter='Algebra')
    q2 = _question(th, correct='C', co='CO2', chapter='Geometry', difficulty='hard')
    quiz = _quiz(th, [q1['id'], q2['id']])
    _, s1 = _user('student', 'Ann')
    _, s2 = _user('student', 'Bob')
    _attempt(s1, quiz['id'], {q1['id']: 'B', q2['id']: 'C'})
    _attempt(s2, quiz['id'], {q1['id']: 'B'})

    r = client.get(f"/quizzes/{quiz['id']}/analytics", headers=th)
    assert r.status_code == 200
    report = r.json()
    assert report['attempts'] == 2
    assert report['average_percentage'] == 75.0
    co = {row['key']: row['accuracy'] for row in report['course_outcomes']}
    assert co == {'CO1': 100.0, 'CO2': 50.0}
    assert report['difficulty'] == {'easy': 1, 'medium': 0, 'hard': 1}
    assert report['score_bands']['81-100%'] == 1
    assert report['score_bands']['41-60%'] == 1
    assert [row['student_name'] for row in report['leaderboard']] == ['Ann', 'Bob']
    assert [row['rank'] for row in report['leaderboard']] == [1, 2]

    dash = client.get('/dashboard/teacher', headers=th).json()
    assert dash['total_quizzes'] == 1
    assert dash['students_attempted'] == 2

    sdash = client.get('/dashboard/student', headers=s2).json()
    assert sdash['completed'] == 1
    assert sdash['best_percentage'] == 50.0
    assert quiz['id'] not in [q['id'] for q in sdash['pending_quizzes']]

    board = client.get('/leaderboard', headers=th)
    assert board.status_code == 200
    assert client.get('/leaderboard', headers=s1).status_code == 403


def test_csv_import_dry_run_and_template():
    _, th = _user('teacher')
    template = client.get('/questions/csv-template')
    assert template.status_code == 200
    content = template.text.encode('utf-8') + b'"Broken row","[""A"",""B""]","C","","","","",""\n'
    files = {'file': ('questions.csv', content, 'text/csv')}
    r = client.post('/questions/import?dry_run=true', headers=th, files=files)
    assert r.status_code == 200
    assert r.json()['created'] == 0
    assert r.json()['valid'] == 2
    assert r.json()['errors'][0]['index'] == 2
    r = client.post('/questions/import', headers=th, files=files)
    assert r.json()['created'] == 2
    assert len(r.json()['ids']) == 2
    wrong = client.post('/questions/import', headers=th, files={'file': ('q.txt', b'x', 'text/plain')})
    assert wrong.status_code == 400


def test_image_upload():
    _, th = _user('teacher')
    bio = io.BytesIO()
    Image.new('RGB', (4, 4), 'red').save(bio, format='PNG')
    r = client.post('/media/images', headers=th, files={'file': ('pic.png', bio.getvalue(), 'image/png')})
    assert r.status_code == 201
    url = r.json()['url']
    assert url.startswith('/media/') and url.endswith('.png')
    assert client.get(url).status_code == 200
    bad = client.post('/media/images', headers=th, files={'file': ('pic.png', b'not an image', 'image/png')})
    assert bad.status_code == 400


def test_deleting_quiz_during_open_attempt_leaves_no_result():
    _, th = _user('teacher')
    q = _question(th)
    quiz = _quiz(th, [q['id']])
    _, sh = _user('student')
    sid = client.post(f"/quizzes/{quiz['id']}/attempts", headers=sh).json()['session_id']
    client.put(f'/attempts/{sid}/answers', headers=sh, json={'question_id': q['id'], 'answer': 'B'})

    assert client.delete(f"/quizzes/{quiz['id']}", headers=th).status_code == 200
    assert attempt_store.get(sid) is None
    assert client.post(f'/attempts/{sid}/submit', headers=sh).status_code == 404
    with Session(engine) as session:
        assert session.get(models.Quiz, quiz['id']) is None
        assert ResultRepository(session).list_by_quiz(quiz['id']) == []


def test_result_write_for_deleted_quiz_is_refused():
    _, th = _user('teacher')
    q = _question(th)
    quiz = _quiz(th, [q['id']])
    student, _ = _user('student')
    client.delete(f"/quizzes/{quiz['id']}", headers=th)
    # a session the ticker picked up before the delete still ends here
    draft = ResultDraft(
        student_id=student['id'], student_name=student['name'], quiz_id=quiz['id'],
        quiz_title=quiz['title'], teacher_name=quiz['teacher_name'], score=1, total_marks=1,
    )
    with pytest.raises(NotFoundError):
        services._persist_result(draft)
    with Session(engine) as session:
        assert ResultRepository(session).list_by_quiz(quiz['id']) == []


def test_sqlite_enforces_result_foreign_keys():
    student, _ = _user('student')
    with Session(engine) as session:
        session.add(models.StudentResult(student_id=student['id'], quiz_id=987654321))
        with pytest.raises(IntegrityError):
            session.commit()
