"""
Core Module - Shared time plumbing.

Components:
- Clock: protocol every engine schedules its ticks through
- LoopClock: asyncio-backed clock used by the CLI
- ManualClock: deterministic clock for tests and simulations
"""

from studyhabits.core.clock import (
    Clock,
    LoopClock,
    ManualClock,
    TickHandle,
    ensure_utc,
    utc_now,
)

__all__ = [
    "Clock",
    "TickHandle",
    "LoopClock",
    "ManualClock",
    "utc_now",
    "ensure_utc",
]
