import uuid
import pytest
from fastapi.testclient import TestClient
from quizboard import domain, services
from quizboard.auth import require_student, require_teacher
from quizboard.errors import PermissionDeniedError
from quizboard.main import app

client = TestClient(app)


def _email(prefix):
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


def test_register_login_and_me():
    email = _email('teach')
    r = client.post('/auth/register', json={
        'name': 'Ms Teacher', 'email': email, 'password': 'pw123',
        'confirm_password': 'pw123', 'user_type': 'teacher',
    })
    assert r.status_code == 200
    assert r.json()['user_type'] == 'teacher'
    r2 = client.post('/auth/login', json={'email': email.upper(), 'password': 'pw123'})
    assert r2.status_code == 200
    token = r2.json()['access_token']
    me = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    assert me.json()['email'] == email


def test_password_mismatch_rejected():
    r = client.post('/auth/register', json={
        'name': 'Sam', 'email': _email('stud'), 'password': 'a',
        'confirm_password': 'b', 'user_type': 'student',
    })
    assert r.status_code == 400
    assert r.json()['detail'] == 'Passwords do not match'


def test_duplicate_email_rejected():
    email = _email('dup')
    body = {'name': 'Sam', 'email': email, 'password': 'a', 'confirm_password': 'a', 'user_type': 'student'}
    assert client.post('/auth/register', json=body).status_code == 200
    assert client.post('/auth/register', json=body).status_code == 400


def test_wrong_password_and_bad_token():
    email = _email('stud')
    client.post('/auth/register', json={
        'name': 'Sam', 'email': email, 'password': 'pw', 'confirm_password': 'pw', 'user_type': 'student',
    })
    assert client.post('/auth/login', json={'email': email, 'password': 'nope'}).status_code == 401
    r = client.get('/quizzes', headers={'Authorization': 'Bearer invalid.token.here'})
    assert r.status_code == 401
    r2 = client.get('/quizzes')
    assert r2.status_code == 401 or r2.status_code == 403


def test_student_cannot_create_questions():
    email = _email('stud')
    client.post('/auth/register', json={
        'name': 'Sam', 'email': email, 'password': 'pw', 'confirm_password': 'pw', 'user_type': 'student',
    })
    token = client.post('/auth/login', json={'email': email, 'password': 'pw'}).json()['access_token']
    r = client.post('/questions', json={'text': 'Q', 'options': ['A', 'B'], 'correct_answer': 'A'},
                    headers={'Authorization': f'Bearer {token}'})
    assert r.status_code == 403


def test_role_checks_raise_the_same_error_as_services():
    student = domain.User(id=1, email='s@example.com', name='Sam', user_type=domain.UserType.STUDENT)
    teacher = domain.User(id=2, email='t@example.com', name='Tia', user_type=domain.UserType.TEACHER)
    with pytest.raises(PermissionDeniedError):
        require_teacher(student)
    with pytest.raises(PermissionDeniedError):
        services._require_teacher(student)
    with pytest.raises(PermissionDeniedError):
        require_student(teacher)
    assert require_teacher(teacher) is teacher
