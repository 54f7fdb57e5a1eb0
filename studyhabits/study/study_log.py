"""
Study Log: history of completed study sessions.

The engines never write history themselves. They emit a
StudySessionRecord to a listener; StudyLog.record is the listener the CLI
wires in. The log is persisted under the "study_sessions" key.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Callable

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from studyhabits.core.clock import ensure_utc

if TYPE_CHECKING:
    from studyhabits.delivery.state_store import KeyValueStore

SESSIONS_KEY = "study_sessions"


class StudyMethod(str, Enum):
    """Study modality that produced a session."""

    POMODORO = "pomodoro"
    ANKI = "anki"
    RSVP = "rsvp"


@dataclass(frozen=True)
class StudySessionRecord:
    """A completed stretch of study."""

    date: datetime
    method: StudyMethod
    duration_minutes: int
    topic: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", ensure_utc(self.date))


SessionListener = Callable[[StudySessionRecord], None]

SESSION_LIST = TypeAdapter(list[StudySessionRecord])


class StudyLog:
    """Persisted list of StudySessionRecords with simple aggregates."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._sessions: list[StudySessionRecord] = []

    def load(self) -> None:
        raw = self.store.get(SESSIONS_KEY)
        if raw is None:
            self._sessions = []
            return
        try:
            self._sessions = SESSION_LIST.validate_python(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid study log ({} errors)", exc.error_count())
            self._sessions = []

    def save(self) -> None:
        self.store.put(SESSIONS_KEY, SESSION_LIST.dump_python(self._sessions, mode="json"))

    def record(self, session: StudySessionRecord) -> None:
        """Append a session and persist the log."""
        self._sessions.append(session)
        self.save()
        logger.info(
            "Logged {} session: {} min ({})",
            session.method.value,
            session.duration_minutes,
            session.topic or "untitled",
        )

    def sessions(self, method: StudyMethod | None = None) -> list[StudySessionRecord]:
        if method is None:
            return list(self._sessions)
        return [session for session in self._sessions if session.method == method]

    def total_minutes(self, method: StudyMethod | None = None) -> int:
        return sum(session.duration_minutes for session in self.sessions(method))

    def minutes_by_method(self) -> dict[StudyMethod, int]:
        totals: Counter[StudyMethod] = Counter()
        for session in self._sessions:
            totals[session.method] += session.duration_minutes
        return dict(totals)

    def streak_days(self, today: date) -> int:
        """Consecutive days, ending today, with at least one session."""
        days = {session.date.date() for session in self._sessions}
        streak = 0
        cursor = today
        while cursor in days:
            streak += 1
            cursor -= timedelta(days=1)
        return streak
