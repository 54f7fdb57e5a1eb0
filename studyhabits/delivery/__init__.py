"""
Flashcard delivery: decks, cards and spaced repetition.

Components:
- Card / Deck: records carrying SM-2 scheduling fields
- SM2Scheduler: pure review -> next schedule
- ItemStore: deck/card collection, due sets, CRUD
- StudySession: reveal/answer cycle over a shuffled due snapshot
- StateStore: SQLite key-value persistence (MemoryStateStore for tests)
"""

from .state_store import KeyValueStore, MemoryStateStore, StateStore
from .deck import Card, Deck, ReviewOutcome
from .scheduler import SM2Config, SM2Scheduler
from .item_store import ItemStore
from .study_session import SessionState, StudySession, StudySessionSnapshot

__all__ = [
    # Persistence
    "KeyValueStore",
    "StateStore",
    "MemoryStateStore",
    # Records
    "Card",
    "Deck",
    "ReviewOutcome",
    # Scheduling
    "SM2Config",
    "SM2Scheduler",
    "ItemStore",
    # Sessions
    "StudySession",
    "StudySessionSnapshot",
    "SessionState",
]
