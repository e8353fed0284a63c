"""Authentication helpers and FastAPI security dependencies.

This module provides utilities to decode JWT tokens and the FastAPI
dependencies `get_current_user`, `require_teacher` and `require_student`
that validate the bearer token and return the corresponding domain
`User`.

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies. Role checks raise
`PermissionDeniedError`, the same error the services use, so both are
answered by the app's `QuizboardError` handler.
"""

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session
from .config import settings
from .database import engine
from . import domain, repositories
from .errors import PermissionDeniedError

bearer_scheme = HTTPBearer()


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail='invalid token')


def get_current_user(credentials: HTTPAuthorizationCredentials = Security(bearer_scheme)) -> domain.User:
    """FastAPI dependency that returns the authenticated user.

    The function extracts the bearer token from the request, decodes it
    and looks the user up in the database. It raises an HTTPException(401)
    for any authentication issue.
    """
    payload = decode_token(credentials.credentials)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    with Session(engine) as session:
        user = repositories.UserRepository(session).get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail='user not found')
    return user


def require_teacher(user: domain.User = Depends(get_current_user)) -> domain.User:
    if user.user_type is not domain.UserType.TEACHER:
        raise PermissionDeniedError('teacher account required')
    return user


def require_student(user: domain.User = Depends(get_current_user)) -> domain.User:
    if user.user_type is not domain.UserType.STUDENT:
        raise PermissionDeniedError('student account required')
    return user
