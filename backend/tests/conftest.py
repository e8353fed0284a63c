import os
import tempfile
from pathlib import Path

import pytest

# Point the app at a throwaway database and media dir before `quizboard` is imported.
_TMP = Path(tempfile.mkdtemp(prefix="quizboard-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP / 'test.db'}")
os.environ.setdefault("MEDIA_DIR", str(_TMP / "media"))
os.environ.setdefault("ATTEMPT_TICKER", "false")

from quizboard.domain import Difficulty, Quiz  # noqa: E402
from factories import make_question  # noqa: E402


@pytest.fixture
def questions():
    return [
        make_question(1, correct="A", co="CO1", chapter="Algebra", difficulty=Difficulty.EASY),
        make_question(2, correct="B", co="CO1", chapter="Algebra", difficulty=Difficulty.MEDIUM),
        make_question(3, correct="C", co="CO2", chapter="Geometry", difficulty=Difficulty.HARD),
        make_question(4, correct="D", co="CO2", chapter="Geometry", difficulty=Difficulty.EASY),
    ]


@pytest.fixture
def quiz():
    return Quiz(
        id=10,
        title="Unit test quiz",
        teacher_id=1,
        teacher_name="Ms Teacher",
        question_ids=(1, 2, 3, 4),
        time_limit=1,
        total_marks=4,
    )
