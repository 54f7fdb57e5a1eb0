"""
Pomodoro Interval Timer.

Cycles work / short break / long break countdowns:

    work --(zero)--> short_break   (completed_cycles % n != 0)
    work --(zero)--> long_break    (completed_cycles % n == 0)
    break --(zero)--> work

The countdown is anchored to a wall-clock deadline rather than to a tick
counter, so a process that was suspended or restarted can work out where
the timer is from the persisted snapshot alone. reconcile() is the startup
entry point: a deadline that passed while nobody was watching produces
exactly one transition, never one per elapsed interval.

Every completed (or skipped) work block is reported to the study log as a
"pomodoro" session of the configured work length.

Persisted keys:
- timer_state     {is_active, is_running, mode, completed_cycles, remaining_seconds, deadline}
- timer_settings  TimerSettings
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from enum import Enum

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from studyhabits.core.clock import Clock, TickHandle, ensure_utc
from studyhabits.delivery.state_store import KeyValueStore

from .study_log import SessionListener, StudyMethod, StudySessionRecord

STATE_KEY = "timer_state"
SETTINGS_KEY = "timer_settings"

DEFAULT_TOPIC = "General study"


class TimerMode(str, Enum):
    """Which countdown the timer is running."""

    WORK = "work"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"

    @property
    def label(self) -> str:
        return {"work": "Focus", "short_break": "Short break", "long_break": "Long break"}[self.value]


class TimerSettings(BaseModel):
    """Block lengths and long-break cadence."""

    model_config = ConfigDict(extra="forbid")

    work_minutes: int = Field(default=25, gt=0)
    short_break_minutes: int = Field(default=5, gt=0)
    long_break_minutes: int = Field(default=15, gt=0)
    sessions_before_long_break: int = Field(default=4, ge=1)

    def minutes_for(self, mode: TimerMode) -> int:
        if mode is TimerMode.WORK:
            return self.work_minutes
        if mode is TimerMode.SHORT_BREAK:
            return self.short_break_minutes
        return self.long_break_minutes

    def seconds_for(self, mode: TimerMode) -> int:
        return self.minutes_for(mode) * 60


@dataclass
class TimerState:
    """Persisted countdown state. deadline is only meaningful while running."""

    is_active: bool = False
    is_running: bool = False
    mode: TimerMode = TimerMode.WORK
    completed_cycles: int = 0
    remaining_seconds: int = 0
    deadline: datetime | None = None

    def __post_init__(self) -> None:
        if self.deadline is not None:
            self.deadline = ensure_utc(self.deadline)


TIMER_STATE = TypeAdapter(TimerState)


@dataclass(frozen=True)
class TimerSnapshot:
    """Read-only view of the timer with remaining time computed live."""

    is_active: bool
    is_running: bool
    mode: TimerMode
    completed_cycles: int
    remaining_seconds: int
    deadline: datetime | None

    @property
    def is_paused(self) -> bool:
        return self.is_active and not self.is_running

    @property
    def display(self) -> str:
        return PomodoroEngine.format_time(self.remaining_seconds)


class PomodoroEngine:
    """
    Deadline-anchored work/break timer.

    Holds at most one scheduled callback, armed at the current deadline.
    Commands issued in an invalid state return False and change nothing.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock,
        settings: TimerSettings | None = None,
        on_session_complete: SessionListener | None = None,
        topic: str = DEFAULT_TOPIC,
    ):
        """
        Initialize the timer.

        Args:
            store: Persistence gateway
            clock: Time source and callback scheduler
            settings: Settings used when none are persisted
            on_session_complete: Listener for completed work blocks
            topic: Topic attached to logged pomodoro sessions
        """
        self.store = store
        self.clock = clock
        self.default_settings = settings or TimerSettings()
        self.settings = self.default_settings
        self.on_session_complete = on_session_complete
        self.topic = topic

        self.state = self._initial_state()
        self._handle: TickHandle | None = None

    def _initial_state(self) -> TimerState:
        return TimerState(remaining_seconds=self.settings.seconds_for(TimerMode.WORK))

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_settings(self) -> TimerSettings:
        raw = self.store.get(SETTINGS_KEY)
        if raw is None:
            return self.default_settings
        try:
            return TimerSettings.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid timer settings ({} errors)", exc.error_count())
            return self.default_settings

    def _load_state(self) -> TimerState:
        raw = self.store.get(STATE_KEY)
        if raw is None:
            return self._initial_state()
        try:
            state = TIMER_STATE.validate_python(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid timer snapshot ({} errors)", exc.error_count())
            return self._initial_state()

        if state.is_running and state.deadline is None:
            logger.warning("Timer snapshot is running without a deadline; restoring as paused")
            state.is_running = False
        if not state.is_active:
            return self._initial_state()
        return state

    def save(self) -> None:
        self.store.put(SETTINGS_KEY, self.settings.model_dump(mode="json"))
        if self.state.is_active:
            self.store.put(STATE_KEY, TIMER_STATE.dump_python(self.state, mode="json"))
        else:
            self.store.delete(STATE_KEY)

    def reconcile(self, now: datetime | None = None) -> TimerSnapshot:
        """
        Rebuild the timer from its persisted snapshot.

        A running snapshot whose deadline has already passed performs one
        zero-crossing transition and keeps running in the next mode. Safe to
        call more than once.

        Args:
            now: Reference time (defaults to the clock)

        Returns:
            Snapshot of the reconciled timer
        """
        self._cancel()
        now = now or self.clock.now()
        self.settings = self._load_settings()
        self.state = self._load_state()

        if self.state.is_running:
            if self.state.deadline <= now:
                logger.info(
                    "Timer deadline passed {:.0f}s ago while away",
                    (now - self.state.deadline).total_seconds(),
                )
                self._cross_zero(now)
            if self._handle is None and self.state.is_running:
                self._arm(now)

        self.save()
        return self.snapshot(now)

    # =========================================================================
    # Commands
    # =========================================================================

    def start(self) -> bool:
        """Start or resume the countdown."""
        if self.state.is_running:
            logger.debug("start ignored: timer already running")
            return False

        if not self.state.is_active:
            self.state.is_active = True
            if self.state.remaining_seconds <= 0:
                self.state.remaining_seconds = self.settings.seconds_for(self.state.mode)

        self._run(self.clock.now())
        self.save()
        logger.info("Timer started: {} {}", self.state.mode.value, self.format_time(self.state.remaining_seconds))
        return True

    def pause(self) -> bool:
        """Freeze the remaining time."""
        if not self.state.is_running:
            logger.debug("pause ignored: timer not running")
            return False

        self._cancel()
        self.state.remaining_seconds = self._remaining_at(self.clock.now())
        self.state.is_running = False
        self.state.deadline = None
        self.save()
        logger.info("Timer paused with {} left", self.format_time(self.state.remaining_seconds))
        return True

    def skip(self) -> bool:
        """
        Finish the current block now.

        A skipped work block still counts as a completed cycle and logs the
        full work length. The timer keeps running in the next mode.
        """
        if not self.state.is_active:
            logger.debug("skip ignored: timer inactive")
            return False

        self._cancel()
        self.state.is_running = False
        self.state.deadline = None

        now = self.clock.now()
        self._cross_zero(now)
        if not self.state.is_running:
            self._run(now)
        self.save()
        return True

    def deactivate(self) -> bool:
        """Stop the timer and forget its state."""
        was_active = self.state.is_active
        self._cancel()
        self.state = self._initial_state()
        self.store.delete(STATE_KEY)
        if was_active:
            logger.info("Timer deactivated")
        return was_active

    def update_settings(self, **changes) -> TimerSettings:
        """
        Change block lengths or cadence.

        Raises:
            ValueError: If a value is out of range or the field is unknown
        """
        self.settings = TimerSettings.model_validate({**self.settings.model_dump(), **changes})
        if not self.state.is_running:
            self.state.remaining_seconds = self.settings.seconds_for(self.state.mode)
        self.save()
        return self.settings

    # =========================================================================
    # Countdown
    # =========================================================================

    def _run(self, now: datetime) -> None:
        self.state.is_running = True
        self.state.deadline = now + timedelta(seconds=self.state.remaining_seconds)
        self._arm(now)

    def _arm(self, now: datetime) -> None:
        self._cancel()
        delay = (self.state.deadline - now).total_seconds()
        self._handle = self.clock.call_later(delay, self._on_deadline)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _on_deadline(self) -> None:
        self._handle = None
        if not self.state.is_running or self.state.deadline is None:
            return

        now = self.clock.now()
        if self.state.deadline > now:
            # Woken early by the loop; wait for the rest.
            self._arm(now)
            return

        self._cross_zero(now)
        if self.state.is_running and self._handle is None:
            self._arm(now)
        self.save()

    def _cross_zero(self, now: datetime) -> None:
        """Move to the next mode; emit a work session when work finishes."""
        finished = self.state.mode
        if finished is TimerMode.WORK:
            self.state.completed_cycles += 1
            if self.state.completed_cycles % self.settings.sessions_before_long_break == 0:
                self.state.mode = TimerMode.LONG_BREAK
            else:
                self.state.mode = TimerMode.SHORT_BREAK
        else:
            self.state.mode = TimerMode.WORK

        self.state.remaining_seconds = self.settings.seconds_for(self.state.mode)
        if self.state.is_running:
            self.state.deadline = now + timedelta(seconds=self.state.remaining_seconds)

        logger.info(
            "Timer {} -> {} (cycles={})",
            finished.value,
            self.state.mode.value,
            self.state.completed_cycles,
        )

        if finished is TimerMode.WORK and self.on_session_complete is not None:
            self.on_session_complete(
                StudySessionRecord(
                    date=now,
                    method=StudyMethod.POMODORO,
                    duration_minutes=self.settings.work_minutes,
                    topic=self.topic,
                )
            )

    def _remaining_at(self, now: datetime) -> int:
        if not self.state.is_running or self.state.deadline is None:
            return self.state.remaining_seconds
        return max(0, math.ceil((self.state.deadline - now).total_seconds()))

    # =========================================================================
    # Snapshot
    # =========================================================================

    def snapshot(self, now: datetime | None = None) -> TimerSnapshot:
        now = now or self.clock.now()
        state = asdict(self.state)
        state["remaining_seconds"] = self._remaining_at(now)
        return TimerSnapshot(**state)

    @staticmethod
    def format_time(seconds: int) -> str:
        """Format seconds as MM:SS."""
        minutes, secs = divmod(max(0, int(seconds)), 60)
        return f"{minutes:02d}:{secs:02d}"
