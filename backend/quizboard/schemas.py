"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Response models are built from the
domain dataclasses with `from_attributes`.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Literal, Optional
from .domain import Difficulty, UserType


class RegisterIn(BaseModel):
    """Payload for user registration."""
    name: str
    email: str
    password: str
    confirm_password: str
    user_type: Literal['teacher', 'student']


class LoginIn(BaseModel):
    email: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = 'bearer'


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    email: str
    name: str
    user_type: UserType


class QuestionIn(BaseModel):
    """Request format for creating a single question."""
    text: str
    options: List[str]
    correct_answer: str
    subject: str = ''
    chapter: str = ''
    co: str = ''
    difficulty_level: str = 'medium'
    image_url: Optional[str] = None


class QuestionPatch(BaseModel):
    text: Optional[str] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    subject: Optional[str] = None
    chapter: Optional[str] = None
    co: Optional[str] = None
    difficulty_level: Optional[str] = None
    image_url: Optional[str] = None


class QuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    text: str
    options: List[str]
    correct_answer: str
    subject: str
    chapter: str
    co: str
    difficulty: Difficulty
    image_url: Optional[str] = None
    created_by: Optional[int] = None


class StudentQuestionOut(BaseModel):
    """Question as shown during an attempt (no correct answer)."""
    model_config = ConfigDict(from_attributes=True)
    id: int
    text: str
    options: List[str]
    subject: str
    chapter: str
    co: str
    difficulty: Difficulty
    image_url: Optional[str] = None


class QuizIn(BaseModel):
    title: str
    question_ids: List[int]
    time_limit: int = Field(default=30)
    active: bool = True


class QuizPatch(BaseModel):
    title: Optional[str] = None
    question_ids: Optional[List[int]] = None
    time_limit: Optional[int] = None
    active: Optional[bool] = None


class QuizOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    title: str
    teacher_id: int
    teacher_name: str
    question_ids: List[int]
    time_limit: int
    total_marks: int
    active: bool
    created_at: Optional[datetime] = None


class AnswerRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    question_id: int
    answer: str
    correct: bool


class ResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    student_id: int
    student_name: str
    quiz_id: int
    quiz_title: str
    teacher_name: str
    score: int
    total_marks: int
    percentage: float
    answers: List[AnswerRecordOut]
    submitted_at: Optional[datetime] = None
    remarks: str = ''
    feedback: str = ''
    remark: str = ''


class RemarksIn(BaseModel):
    remarks: str


class FeedbackIn(BaseModel):
    feedback: str


class AnswerIn(BaseModel):
    question_id: int
    answer: str


class NavigateIn(BaseModel):
    index: Optional[int] = None
    direction: Optional[Literal['next', 'previous']] = None


class AttemptOut(BaseModel):
    session_id: str
    quiz_id: int
    title: str
    state: str
    current_index: int
    questions: List[StudentQuestionOut]
    answers: Dict[int, str]
    answered_count: int
    progress: float
    remaining_seconds: int
    time_left: str
    result: Optional[ResultOut] = None


class AccuracyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    key: str
    label: str
    answered: int
    correct: int
    accuracy: float


class LeaderboardRowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    rank: int
    result_id: int
    student_id: int
    student_name: str
    score: int
    total_marks: int
    percentage: float


class OverallLeaderboardRowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    student_id: int
    student_name: str
    total_score: int
    total_marks: int
    quizzes_taken: int
    average_percentage: float


class QuizReportOut(BaseModel):
    quiz_id: int
    title: str
    attempts: int
    average_percentage: float
    course_outcomes: List[AccuracyOut]
    chapters: List[AccuracyOut]
    questions: List[AccuracyOut]
    difficulty: Dict[str, int]
    score_bands: Dict[str, int]
    leaderboard: List[LeaderboardRowOut]


class TeacherDashboardOut(BaseModel):
    total_quizzes: int
    active_quizzes: int
    students_attempted: int
    average_percentage: float


class StudentDashboardOut(BaseModel):
    pending_quizzes: List[QuizOut]
    completed: int
    average_percentage: float
    best_percentage: float
    results: List[ResultOut]
