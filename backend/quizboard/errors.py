"""Exception hierarchy shared by services, sessions and controllers.

Every error carries the HTTP status the API should answer with so the
FastAPI app can translate them with a single exception handler.
"""


class QuizboardError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(QuizboardError, ValueError):
    """Input rejected before anything is written."""
    status_code = 400


class EmptySubmissionError(ValidationError):
    """Manual submit with no answered question."""


class NotFoundError(QuizboardError):
    status_code = 404


class PermissionDeniedError(QuizboardError):
    status_code = 403


class AlreadyAttemptedError(QuizboardError):
    """A result already exists for this (student, quiz) pair."""
    status_code = 409


class SessionStateError(QuizboardError):
    """Transition not allowed in the attempt session's current state."""
    status_code = 409
