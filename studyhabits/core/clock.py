"""
Wall Clock and Tick Scheduling.

Every engine in studyhabits is single-threaded and callback driven. Time
comes from a Clock, which provides:
- now(): the current wall-clock instant (timezone-aware UTC)
- call_later(): a one-shot callback returning a cancellable TickHandle

Two implementations:
- LoopClock: backed by an asyncio event loop (used by the CLI)
- ManualClock: deterministic, advanced by hand (tests and simulations)

An engine holds at most one TickHandle at a time and must cancel it
before arming another.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from loguru import logger


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalise naive datetimes to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TickHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Clock(Protocol):
    """Time source plus one-shot scheduling."""

    def now(self) -> datetime: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TickHandle: ...


# =============================================================================
# asyncio-backed clock
# =============================================================================


class LoopClock:
    """
    Clock backed by an asyncio event loop.

    Callbacks only fire while the loop is running. One-shot CLI commands
    can still construct engines with a LoopClock; their handles simply
    never fire before the process exits.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self.loop = loop or asyncio.new_event_loop()

    def now(self) -> datetime:
        return utc_now()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, delay), callback)


# =============================================================================
# Deterministic clock
# =============================================================================


@dataclass
class ManualHandle:
    """Handle returned by ManualClock.call_later."""

    due: datetime
    callback: Callable[[], None]
    _cancelled: bool = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class ManualClock:
    """
    Clock whose time only moves when advance() is called.

    Due callbacks fire in deadline order (ties in scheduling order), and a
    callback scheduled from inside another callback fires in the same
    advance() if it falls inside the window.
    """

    current: datetime = field(
        default_factory=lambda: datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    )
    _queue: list[tuple[datetime, int, ManualHandle]] = field(default_factory=list, repr=False)
    _seq: itertools.count = field(default_factory=itertools.count, repr=False)

    def __post_init__(self) -> None:
        self.current = ensure_utc(self.current)

    def now(self) -> datetime:
        return self.current

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(due=self.current + timedelta(seconds=max(0.0, delay)), callback=callback)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have not been cancelled."""
        return sum(1 for _, _, handle in self._queue if not handle.cancelled())

    def advance(self, seconds: float) -> int:
        """
        Move time forward, firing every callback due on the way.

        Returns:
            Number of callbacks fired
        """
        target = self.current + timedelta(seconds=seconds)
        fired = 0

        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled():
                continue
            self.current = max(self.current, due)
            handle.cancel()
            handle.callback()
            fired += 1

        self.current = target
        return fired

    def jump(self, seconds: float) -> None:
        """Move time forward without firing anything (a suspended process)."""
        self.current = self.current + timedelta(seconds=seconds)
        logger.debug("ManualClock jumped {}s to {}", seconds, self.current.isoformat())
