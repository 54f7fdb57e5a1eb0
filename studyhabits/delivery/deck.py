"""
Deck and Card records.

Cards carry their own SM-2 scheduling fields (due_at, interval_days,
ease_factor, consecutive_successes, last_reviewed_at). Decks carry two
derived counters (total_count, due_count) that ItemStore recomputes from
the card collection; they are never authoritative.

Persisted as JSON lists through pydantic TypeAdapters so a malformed
snapshot is rejected as a whole instead of half-loading.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from pydantic import TypeAdapter

from studyhabits.core.clock import ensure_utc, utc_now

DEFAULT_EASE = 2.5
MINIMUM_EASE = 1.3
MAX_INTERVAL_DAYS = 365

SCHEDULING_FIELDS = (
    "due_at",
    "interval_days",
    "ease_factor",
    "consecutive_successes",
    "last_reviewed_at",
    "updated_at",
)


def new_id() -> str:
    """Random identifier for decks, cards and texts."""
    return uuid.uuid4().hex[:16]


class ReviewOutcome(str, Enum):
    """How well the learner recalled a card."""

    FAIL = "fail"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @classmethod
    def parse(cls, value: str | int | ReviewOutcome) -> ReviewOutcome:
        """
        Parse user input into an outcome.

        Accepts the enum values, "again" (alias of fail) and the answer
        keys 1-4 shown by the review screen.
        """
        if isinstance(value, ReviewOutcome):
            return value
        text = str(value).strip().lower()
        aliases = {"again": "fail", "1": "fail", "2": "hard", "3": "good", "4": "easy"}
        return cls(aliases.get(text, text))


@dataclass
class Card:
    """A two-sided memorization item with its scheduling state."""

    id: str
    deck_id: str
    front: str
    back: str
    due_at: datetime
    interval_days: int = 0
    ease_factor: float = DEFAULT_EASE
    consecutive_successes: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    last_reviewed_at: datetime | None = None

    def __post_init__(self) -> None:
        self.due_at = ensure_utc(self.due_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)
        if self.last_reviewed_at is not None:
            self.last_reviewed_at = ensure_utc(self.last_reviewed_at)
        # Hand-edited or stale rows are pulled back into the scheduling range.
        self.ease_factor = max(MINIMUM_EASE, self.ease_factor)
        self.interval_days = min(max(0, self.interval_days), MAX_INTERVAL_DAYS)
        self.consecutive_successes = max(0, self.consecutive_successes)

    @classmethod
    def new(cls, deck_id: str, front: str, back: str, now: datetime | None = None) -> Card:
        """Create a card that is due immediately."""
        now = now or utc_now()
        return cls(
            id=new_id(),
            deck_id=deck_id,
            front=front,
            back=back,
            due_at=now,
            created_at=now,
            updated_at=now,
        )

    def is_due(self, now: datetime) -> bool:
        return self.due_at <= now

    def with_schedule_of(self, other: Card) -> Card:
        """Copy of this card carrying only the scheduling fields of *other*."""
        return replace(self, **{name: getattr(other, name) for name in SCHEDULING_FIELDS})


@dataclass
class Deck:
    """A named group of cards."""

    id: str
    name: str
    description: str = ""
    color: str = "#4F46E5"
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    # Derived from the card collection
    total_count: int = 0
    due_count: int = 0


CARD_LIST = TypeAdapter(list[Card])
DECK_LIST = TypeAdapter(list[Deck])
