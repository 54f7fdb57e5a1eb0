"""
Integration Tests for the Study Flow.

All three engines share one SQLite state file, the way the CLI wires them:
1. Flashcard review writes card schedules and an "anki" session
2. The pomodoro timer survives a restart in the middle of a block
3. The reader logs an "rsvp" session
4. A fresh process sees everything through the study log
"""

import random
from datetime import timedelta

import pytest

from studyhabits.core.clock import ManualClock
from studyhabits.delivery.deck import ReviewOutcome
from studyhabits.delivery.item_store import ItemStore
from studyhabits.delivery.state_store import StateStore
from studyhabits.delivery.study_session import SessionState, StudySession
from studyhabits.study.pomodoro_engine import PomodoroEngine, TimerMode
from studyhabits.study.reader_engine import ReaderEngine
from studyhabits.study.study_log import StudyLog, StudyMethod

pytestmark = pytest.mark.integration


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "state.db"


class Process:
    """One run of the app: a store, a log and the engines on top."""

    def __init__(self, db_path, clock):
        self.store = StateStore(db_path)
        self.clock = clock
        self.log = StudyLog(self.store)
        self.log.load()
        self.items = ItemStore(self.store, now=clock.now)
        self.items.load()
        self.timer = PomodoroEngine(self.store, clock, on_session_complete=self.log.record)
        self.timer.reconcile()
        self.reader = ReaderEngine(self.store, clock, on_session_complete=self.log.record)
        self.reader.load()

    def close(self):
        self.store.close()


class TestStudyFlow:
    """End-to-end study day against one state file."""

    def test_review_session_persists(self, db_path, clock):
        app = Process(db_path, clock)
        deck = app.items.create_deck("Geography")
        for front, back in [("France", "Paris"), ("Spain", "Madrid")]:
            app.items.create_card(deck.id, front, back)

        session = StudySession(app.items, on_complete=app.log.record, rng=random.Random(1), now=clock.now)
        assert session.start(deck.id)
        while session.is_active:
            session.reveal()
            clock.advance(30)
            session.submit(ReviewOutcome.GOOD)
        assert session.state is SessionState.COMPLETE
        app.close()

        later = Process(db_path, clock)
        reloaded = later.items.get_deck(deck.id)
        assert reloaded.total_count == 2
        assert reloaded.due_count == 0
        assert all(card.interval_days == 1 for card in later.items.cards_for_deck(deck.id))
        assert [s.method for s in later.log.sessions()] == [StudyMethod.ANKI]
        assert later.log.sessions()[0].topic == "Geography"
        later.close()

    def test_timer_survives_restart(self, db_path, start_time):
        clock = ManualClock(current=start_time)
        app = Process(db_path, clock)
        app.timer.start()
        clock.advance(10 * 60)
        app.close()

        # Process gone for 40 minutes: the work block ended 25 minutes ago
        clock.jump(40 * 60)
        later = Process(db_path, clock)

        snap = later.timer.snapshot()
        assert snap.mode is TimerMode.SHORT_BREAK
        assert snap.completed_cycles == 1
        assert snap.is_running
        assert snap.remaining_seconds == 5 * 60
        assert [s.duration_minutes for s in later.log.sessions(StudyMethod.POMODORO)] == [25]
        later.close()

    def test_paused_timer_survives_restart(self, db_path, clock):
        app = Process(db_path, clock)
        app.timer.start()
        clock.advance(90)
        app.timer.pause()
        app.close()

        clock.jump(timedelta(days=1).total_seconds())
        later = Process(db_path, clock)

        snap = later.timer.snapshot()
        assert snap.is_paused
        assert snap.remaining_seconds == 25 * 60 - 90
        later.close()

    def test_reading_logged(self, db_path, clock):
        app = Process(db_path, clock)
        text = app.reader.create_text("Short story", "once upon a time", rate_wpm=120)

        app.reader.start_reading(text.id)
        clock.advance(2.5)
        assert app.reader.snapshot().progress == 100
        app.close()

        later = Process(db_path, clock)
        assert later.log.total_minutes(StudyMethod.RSVP) == 1
        assert later.reader.current_text().id == text.id
        assert later.reader.get_text(text.id).last_read_at is not None
        later.close()

    def test_all_keys_written(self, db_path, clock):
        app = Process(db_path, clock)
        deck = app.items.create_deck("Any")
        app.items.create_card(deck.id, "q", "a")
        app.timer.start()
        app.reader.create_text("T", "a b c")
        app.reader.start_reading(app.reader.texts[0].id)

        keys = set(app.store.keys())
        assert {
            "decks",
            "cards",
            "current_deck",
            "timer_state",
            "timer_settings",
            "reader_texts",
            "reader_settings",
            "current_text",
        } <= keys
        app.close()
