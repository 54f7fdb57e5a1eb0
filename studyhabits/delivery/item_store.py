"""
Item Store: decks and cards.

Owns the card collection grouped into decks and answers due-set queries.
Scheduling fields are only ever changed through apply_review(), which takes
the output of SM2Scheduler; CRUD helpers never touch them.

Persisted keys:
- decks         list of Deck (counters included but recomputed on load)
- cards         list of Card
- current_deck  selected deck id
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Callable

from loguru import logger
from pydantic import ValidationError

from studyhabits.core.clock import utc_now

from .deck import CARD_LIST, DECK_LIST, Card, Deck, ReviewOutcome, new_id
from .scheduler import SM2Scheduler
from .state_store import KeyValueStore

DECKS_KEY = "decks"
CARDS_KEY = "cards"
CURRENT_DECK_KEY = "current_deck"

DEFAULT_DECK_NAME = "My first deck"
DEFAULT_DECK_DESCRIPTION = "A deck to get your studies started"


class ItemStore:
    """
    In-memory deck/card collection with explicit persistence.

    Every mutating method saves synchronously before returning.
    """

    def __init__(
        self,
        store: KeyValueStore,
        scheduler: SM2Scheduler | None = None,
        now: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the item store.

        Args:
            store: Persistence gateway
            scheduler: SM2Scheduler used by review_card (creates default if None)
            now: Wall-clock source for counters and timestamps
        """
        self.store = store
        self.scheduler = scheduler or SM2Scheduler()
        self._now = now

        self._decks: list[Deck] = []
        self._cards: list[Card] = []
        self._current_deck_id: str | None = None

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> None:
        """Read decks, cards and the current deck; fall back to defaults."""
        self._decks = self._read_list(DECKS_KEY, DECK_LIST)
        self._cards = self._read_list(CARDS_KEY, CARD_LIST)

        current = self.store.get(CURRENT_DECK_KEY)
        self._current_deck_id = current if isinstance(current, str) else None

        if not self._decks:
            self._decks.append(
                Deck(
                    id=new_id(),
                    name=DEFAULT_DECK_NAME,
                    description=DEFAULT_DECK_DESCRIPTION,
                    created_at=self._now(),
                    updated_at=self._now(),
                )
            )
            self._current_deck_id = self._decks[0].id

        self.refresh_counts()
        logger.debug("Loaded {} decks and {} cards", len(self._decks), len(self._cards))

    def _read_list(self, key: str, adapter) -> list:
        raw = self.store.get(key)
        if raw is None:
            return []
        try:
            return adapter.validate_python(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid {} snapshot ({} errors)", key, exc.error_count())
            return []

    def save(self) -> None:
        """Write every snapshot key."""
        self.store.put(DECKS_KEY, DECK_LIST.dump_python(self._decks, mode="json"))
        self.store.put(CARDS_KEY, CARD_LIST.dump_python(self._cards, mode="json"))
        if self._current_deck_id:
            self.store.put(CURRENT_DECK_KEY, self._current_deck_id)
        else:
            self.store.delete(CURRENT_DECK_KEY)

    def _commit(self) -> None:
        self.refresh_counts()
        self.save()

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def decks(self) -> list[Deck]:
        return list(self._decks)

    @property
    def cards(self) -> list[Card]:
        return list(self._cards)

    def get_deck(self, deck_id: str) -> Deck | None:
        return next((deck for deck in self._decks if deck.id == deck_id), None)

    def get_card(self, card_id: str) -> Card | None:
        return next((card for card in self._cards if card.id == card_id), None)

    def cards_for_deck(self, deck_id: str) -> list[Card]:
        return [card for card in self._cards if card.deck_id == deck_id]

    def due_set(self, deck_id: str, now: datetime | None = None) -> list[Card]:
        """
        Cards of a deck that are due.

        Args:
            deck_id: Deck to query
            now: Reference time (defaults to the store clock)

        Returns:
            Cards with due_at <= now, oldest due first
        """
        now = now or self._now()
        due = [card for card in self._cards if card.deck_id == deck_id and card.due_at <= now]
        due.sort(key=lambda card: (card.due_at, card.id))
        return due

    def refresh_counts(self, now: datetime | None = None) -> None:
        """Recompute the derived deck counters from the card collection."""
        now = now or self._now()
        totals: dict[str, int] = {}
        dues: dict[str, int] = {}
        for card in self._cards:
            totals[card.deck_id] = totals.get(card.deck_id, 0) + 1
            if card.due_at <= now:
                dues[card.deck_id] = dues.get(card.deck_id, 0) + 1

        self._decks = [
            replace(deck, total_count=totals.get(deck.id, 0), due_count=dues.get(deck.id, 0))
            for deck in self._decks
        ]

    # =========================================================================
    # Scheduling
    # =========================================================================

    def apply_review(self, card_id: str, updated: Card) -> bool:
        """
        Overwrite the scheduling fields of a card.

        Args:
            card_id: Card to update
            updated: Card carrying the new scheduling fields

        Returns:
            False when the card no longer exists
        """
        for index, card in enumerate(self._cards):
            if card.id == card_id:
                self._cards[index] = card.with_schedule_of(updated)
                self._commit()
                return True

        logger.debug("apply_review: card {} not found", card_id)
        return False

    def review_card(
        self,
        card_id: str,
        outcome: ReviewOutcome | str,
        now: datetime | None = None,
    ) -> Card | None:
        """Run the scheduler on a stored card and write the result back."""
        card = self.get_card(card_id)
        if card is None:
            return None

        updated = self.scheduler.review(card, outcome, now or self._now())
        self.apply_review(card_id, updated)
        logger.debug(
            "Reviewed {} as {}: interval={}d ease={:.2f}",
            card_id,
            ReviewOutcome.parse(outcome).value,
            updated.interval_days,
            updated.ease_factor,
        )
        return self.get_card(card_id)

    # =========================================================================
    # Deck CRUD
    # =========================================================================

    def create_deck(self, name: str, description: str = "", color: str = "#4F46E5") -> Deck:
        now = self._now()
        deck = Deck(id=new_id(), name=name, description=description, color=color, created_at=now, updated_at=now)
        self._decks.append(deck)

        if len(self._decks) == 1:
            self._current_deck_id = deck.id

        self._commit()
        logger.info("Created deck {} ({})", deck.name, deck.id)
        return self.get_deck(deck.id)

    def update_deck(self, deck_id: str, **fields) -> Deck | None:
        """Update name, description or color of a deck."""
        allowed = {key: value for key, value in fields.items() if key in ("name", "description", "color")}
        for index, deck in enumerate(self._decks):
            if deck.id == deck_id:
                self._decks[index] = replace(deck, updated_at=self._now(), **allowed)
                self._commit()
                return self._decks[index]
        return None

    def delete_deck(self, deck_id: str) -> bool:
        """Delete a deck together with its cards."""
        if self.get_deck(deck_id) is None:
            return False

        self._cards = [card for card in self._cards if card.deck_id != deck_id]
        self._decks = [deck for deck in self._decks if deck.id != deck_id]
        if self._current_deck_id == deck_id:
            self._current_deck_id = None

        self._commit()
        logger.info("Deleted deck {}", deck_id)
        return True

    def current_deck(self) -> Deck | None:
        if not self._current_deck_id:
            return None
        return self.get_deck(self._current_deck_id)

    def set_current_deck(self, deck_id: str | None) -> bool:
        if deck_id is not None and self.get_deck(deck_id) is None:
            return False
        self._current_deck_id = deck_id
        self.save()
        return True

    # =========================================================================
    # Card CRUD
    # =========================================================================

    def create_card(self, deck_id: str, front: str, back: str) -> Card | None:
        """Add a card that is due immediately; None if the deck is unknown."""
        if self.get_deck(deck_id) is None:
            return None

        card = Card.new(deck_id, front, back, now=self._now())
        self._cards.append(card)
        self._commit()
        return card

    def update_card(self, card_id: str, front: str | None = None, back: str | None = None) -> Card | None:
        """Edit card content; scheduling fields are left alone."""
        for index, card in enumerate(self._cards):
            if card.id == card_id:
                self._cards[index] = replace(
                    card,
                    front=card.front if front is None else front,
                    back=card.back if back is None else back,
                    updated_at=self._now(),
                )
                self._commit()
                return self._cards[index]
        return None

    def delete_card(self, card_id: str) -> bool:
        before = len(self._cards)
        self._cards = [card for card in self._cards if card.id != card_id]
        if len(self._cards) == before:
            return False
        self._commit()
        return True
