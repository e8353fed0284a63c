"""In-memory registry of live attempt sessions with a countdown ticker."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from ..attempts import AttemptSession
from ..errors import QuizboardError

logger = logging.getLogger("quizboard.attempts")


class AttemptSessionStore:
    def __init__(self, ttl_seconds: int = 3600, tick_interval: float = 1.0):
        self._sessions: dict[str, AttemptSession] = {}
        self._finished_at: dict[str, float] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self._tick_interval = tick_interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def add(self, session: AttemptSession) -> AttemptSession:
        self._cleanup()
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[AttemptSession]:
        self._cleanup()
        with self._lock:
            return self._sessions.get(session_id)

    def find_live(self, student_id: int, quiz_id: int) -> Optional[AttemptSession]:
        """Return an unfinished session for (student, quiz), if one exists."""
        with self._lock:
            for s in self._sessions.values():
                if s.student_id == student_id and s.quiz_id == quiz_id and not s.is_terminal:
                    return s
        return None

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
            self._finished_at.pop(session_id, None)

    def discard_quiz(self, quiz_id: int) -> int:
        """Drop every session of a quiz, finished or not; returns how many."""
        with self._lock:
            doomed = [sid for sid, s in self._sessions.items() if s.quiz_id == quiz_id]
        for sid in doomed:
            self.discard(sid)
        return len(doomed)

    def tick_all(self, seconds: int = 1) -> int:
        """Tick every unfinished session once; returns how many ticked."""
        with self._lock:
            live = [s for s in self._sessions.values() if not s.is_terminal]
        for s in live:
            try:
                s.tick(seconds)
            except QuizboardError as exc:
                logger.warning("auto-submit rejected session=%s: %s", s.session_id, exc.detail)
            except Exception:
                logger.exception("auto-submit failed session=%s", s.session_id)
        now = time.time()
        with self._lock:
            for s in live:
                if s.is_terminal:
                    self._finished_at.setdefault(s.session_id, now)
        return len(live)

    def start_ticker(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="attempt-ticker", daemon=True)
        self._thread.start()

    def stop_ticker(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=self._tick_interval * 2)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._tick_interval):
            self.tick_all()

    def _cleanup(self) -> None:
        cutoff = time.time() - self._ttl_seconds
        with self._lock:
            for sid, s in self._sessions.items():
                if s.is_terminal and sid not in self._finished_at:
                    self._finished_at[sid] = time.time()
            expired = [sid for sid, ts in self._finished_at.items() if ts < cutoff]
            for sid in expired:
                self._sessions.pop(sid, None)
                self._finished_at.pop(sid, None)
