"""
Study Module - timed study methods and the session history.

Provides:
- Pomodoro work/break timer with deadline recovery
- RSVP paced reader with a text library
- Study log of completed sessions
"""

from studyhabits.study.study_log import StudyLog, StudyMethod, StudySessionRecord
from studyhabits.study.pomodoro_engine import (
    PomodoroEngine,
    TimerMode,
    TimerSettings,
    TimerSnapshot,
)
from studyhabits.study.reader_engine import (
    PlaybackSnapshot,
    ReaderEngine,
    ReaderSettings,
    ReaderText,
)

__all__ = [
    "StudyLog",
    "StudyMethod",
    "StudySessionRecord",
    "PomodoroEngine",
    "TimerMode",
    "TimerSettings",
    "TimerSnapshot",
    "ReaderEngine",
    "ReaderSettings",
    "ReaderText",
    "PlaybackSnapshot",
]
