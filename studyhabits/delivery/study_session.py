"""
Flashcard Study Session.

State machine driving one pass over a deck's due cards:

    IDLE -> PRESENTING(front) -> REVEALED(back) -> PRESENTING(next) | COMPLETE

The queue is a shuffled snapshot of the due set taken at start(); cards
that become due later are not admitted. Cards deleted while the session
runs are skipped. end() abandons the session without touching the cards
that were not reached, so they stay due.
"""

from __future__ import annotations

import random
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

from loguru import logger

from studyhabits.core.clock import utc_now
from studyhabits.study.study_log import SessionListener, StudyMethod, StudySessionRecord

from .deck import Card, ReviewOutcome
from .item_store import ItemStore


class SessionState(str, Enum):
    """Where the session is in the reveal/answer cycle."""

    IDLE = "idle"
    PRESENTING = "presenting"
    REVEALED = "revealed"
    COMPLETE = "complete"


@dataclass(frozen=True)
class StudySessionSnapshot:
    """Read-only view handed to the UI."""

    state: SessionState
    deck_id: str | None
    card: Card | None
    position: int
    total: int
    revealed: bool
    reviewed: int = 0
    outcome_counts: dict[ReviewOutcome, int] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.PRESENTING, SessionState.REVEALED)

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.position)


class StudySession:
    """
    Sequences due cards through reveal/answer and reschedules each answer.

    Misuse (reveal twice, submit before reveal, start with nothing due)
    is reported through the return value and otherwise ignored.
    """

    def __init__(
        self,
        items: ItemStore,
        on_complete: SessionListener | None = None,
        rng: random.Random | None = None,
        now: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the session engine.

        Args:
            items: ItemStore holding the cards
            on_complete: Listener receiving a StudySessionRecord when the queue is exhausted
            rng: Random source used to shuffle the queue
            now: Wall-clock source
        """
        self.items = items
        self.on_complete = on_complete
        self.rng = rng or random.Random()
        self._now = now

        self._reset()

    def _reset(self) -> None:
        self.state = SessionState.IDLE
        self.deck_id: str | None = None
        self.queue: list[str] = []
        self.cursor = 0
        self.started_at: datetime | None = None
        self.outcomes: Counter[ReviewOutcome] = Counter()

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.PRESENTING, SessionState.REVEALED)

    # =========================================================================
    # Commands
    # =========================================================================

    def start(self, deck_id: str) -> bool:
        """
        Snapshot and shuffle the deck's due cards.

        Returns:
            False when a session is already running or nothing is due
        """
        if self.is_active:
            logger.debug("start ignored: session already active")
            return False

        now = self._now()
        due = self.items.due_set(deck_id, now)
        if not due:
            logger.debug("start ignored: no cards due in deck {}", deck_id)
            return False

        queue = [card.id for card in due]
        self.rng.shuffle(queue)

        self._reset()
        self.deck_id = deck_id
        self.queue = queue
        self.started_at = now
        self.state = SessionState.PRESENTING
        self._skip_missing()

        logger.info("Study session started: {} cards in deck {}", len(queue), deck_id)
        return self.is_active

    def reveal(self) -> bool:
        """Show the back of the current card."""
        if self.state is not SessionState.PRESENTING:
            return False
        self.state = SessionState.REVEALED
        return True

    def submit(self, outcome: ReviewOutcome | str) -> Card | None:
        """
        Grade the current card and move on.

        Returns:
            The rescheduled card, or None when the call was invalid or the
            card disappeared from the store
        """
        if self.state is not SessionState.REVEALED:
            return None

        outcome = ReviewOutcome.parse(outcome)
        card_id = self.queue[self.cursor]
        updated = self.items.review_card(card_id, outcome, self._now())
        if updated is not None:
            self.outcomes[outcome] += 1

        self.cursor += 1
        self.state = SessionState.PRESENTING
        self._skip_missing()
        return updated

    def end(self) -> None:
        """Abandon the session; unreached cards remain due."""
        if self.state is not SessionState.IDLE:
            logger.info(
                "Study session ended after {}/{} cards",
                min(self.cursor, len(self.queue)),
                len(self.queue),
            )
        self._reset()

    # =========================================================================
    # Internals
    # =========================================================================

    def _skip_missing(self) -> None:
        """Advance past deleted cards; finish when the queue runs out."""
        while self.cursor < len(self.queue) and self.items.get_card(self.queue[self.cursor]) is None:
            logger.debug("Skipping deleted card {}", self.queue[self.cursor])
            self.cursor += 1

        if self.cursor >= len(self.queue):
            self._complete()

    def _complete(self) -> None:
        self.state = SessionState.COMPLETE
        reviewed = sum(self.outcomes.values())
        if not reviewed or self.on_complete is None:
            return

        elapsed = (self._now() - self.started_at).total_seconds() if self.started_at else 0
        deck = self.items.get_deck(self.deck_id) if self.deck_id else None
        self.on_complete(
            StudySessionRecord(
                date=self._now(),
                method=StudyMethod.ANKI,
                duration_minutes=max(1, round(elapsed / 60)),
                topic=deck.name if deck else "",
            )
        )

    # =========================================================================
    # Snapshot
    # =========================================================================

    def current_card(self) -> Card | None:
        if not self.is_active:
            return None
        return self.items.get_card(self.queue[self.cursor])

    def snapshot(self) -> StudySessionSnapshot:
        return StudySessionSnapshot(
            state=self.state,
            deck_id=self.deck_id,
            card=self.current_card(),
            position=min(self.cursor, len(self.queue)),
            total=len(self.queue),
            revealed=self.state is SessionState.REVEALED,
            reviewed=sum(self.outcomes.values()),
            outcome_counts=dict(self.outcomes),
        )
