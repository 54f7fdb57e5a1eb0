"""
Unit tests for the RSVP ReaderEngine.

Playback, skips, speed changes and the text library, driven by the
ManualClock.
"""

import pytest

from studyhabits.study.reader_engine import (
    CURRENT_TEXT_KEY,
    SAMPLE_TITLE,
    TEXTS_KEY,
    ReaderEngine,
    ReaderSettings,
    tokenize,
)
from studyhabits.study.study_log import StudyMethod

TWELVE = "one two three four five six seven eight nine ten eleven twelve"


@pytest.fixture
def records():
    return []


@pytest.fixture
def reader(kv, clock, records):
    engine = ReaderEngine(kv, clock, on_session_complete=records.append)
    engine.load()
    return engine


@pytest.fixture
def text(reader):
    """Twelve words at 600 wpm (one word every 100 ms)."""
    return reader.create_text("Numbers", TWELVE, rate_wpm=600)


class TestTokenize:
    def test_whitespace_split_drops_empties(self):
        assert tokenize("  a\tb \n\n c  ") == ["a", "b", "c"]

    def test_empty(self):
        assert tokenize("   ") == []


class TestPlayback:
    """Test ticking and completion."""

    def test_start_reading(self, reader, text, clock):
        assert reader.start_reading(text.id) is True

        snap = reader.snapshot()
        assert snap.is_active and not snap.is_paused
        assert snap.cursor == 0
        assert snap.token == "one"
        assert snap.total == 12
        assert snap.rate_wpm == 600
        assert clock.pending == 1

    def test_start_unknown_text(self, reader):
        assert reader.start_reading("missing") is False
        assert reader.snapshot().is_active is False

    def test_start_empty_text(self, reader, clock):
        blank = reader.create_text("Blank", "   \n  ")

        assert reader.start_reading(blank.id) is False
        assert clock.pending == 0

    def test_start_stamps_text(self, reader, text, clock, kv):
        clock.advance(30)
        reader.start_reading(text.id)

        assert reader.get_text(text.id).last_read_at == clock.now()
        assert reader.current_text().id == text.id
        assert kv.get(CURRENT_TEXT_KEY) == text.id

    def test_ticks_advance_cursor(self, reader, text, clock):
        reader.start_reading(text.id)

        clock.advance(0.1)
        assert reader.snapshot().cursor == 1

        clock.advance(0.5)
        snap = reader.snapshot()
        assert snap.cursor == 6
        assert snap.progress == pytest.approx(50.0)

    def test_completion(self, reader, text, clock, records):
        reader.start_reading(text.id)

        clock.advance(1.1)
        assert reader.snapshot().cursor == 11
        assert records == []

        clock.advance(0.1)
        snap = reader.snapshot()
        assert snap.cursor == 11
        assert snap.is_paused
        assert snap.progress == 100
        assert clock.pending == 0

        assert len(records) == 1
        assert records[0].method is StudyMethod.RSVP
        assert records[0].topic == "Numbers"
        assert records[0].duration_minutes == 1

    def test_single_token_completes_on_first_tick(self, reader, clock, records):
        single = reader.create_text("One", "hello", rate_wpm=60)
        reader.start_reading(single.id)

        assert clock.advance(1) == 1

        assert reader.snapshot().progress == 100
        assert len(records) == 1

    def test_elapsed_minutes_logged(self, reader, clock, records):
        slow = reader.create_text("Slow", TWELVE, rate_wpm=4)
        reader.start_reading(slow.id)

        clock.advance(12 * 15)

        assert records[0].duration_minutes == 3

    def test_start_replaces_previous_session(self, reader, text, clock):
        other = reader.create_text("Other", "a b c", rate_wpm=60)
        reader.start_reading(text.id)
        reader.start_reading(other.id)

        assert clock.pending == 1
        assert reader.snapshot().title == "Other"


class TestControls:
    """Test pause, resume, skips, speed and restart."""

    def test_skip_forward_clamps(self, reader, text):
        reader.start_reading(text.id)

        reader.skip_forward()
        assert reader.snapshot().cursor == 10

        reader.skip_forward()
        snap = reader.snapshot()
        assert snap.cursor == 11
        assert snap.progress == pytest.approx(11 / 12 * 100)

    def test_skip_backward_clamps(self, reader, text):
        reader.start_reading(text.id)
        reader.skip_forward()
        reader.skip_forward()

        reader.skip_backward()
        assert reader.snapshot().cursor == 1

        reader.skip_backward()
        snap = reader.snapshot()
        assert snap.cursor == 0
        assert snap.progress == 0

    def test_custom_skip_step(self, kv, clock):
        reader = ReaderEngine(kv, clock, skip_step=3)
        reader.load()
        text = reader.create_text("Numbers", TWELVE)
        reader.start_reading(text.id)

        reader.skip_forward()

        assert reader.snapshot().cursor == 3

    def test_skip_without_session(self, reader):
        assert reader.skip_forward() is False
        assert reader.skip_backward() is False

    def test_pause_and_resume(self, reader, text, clock):
        reader.start_reading(text.id)
        clock.advance(0.2)

        assert reader.pause_reading() is True
        assert reader.pause_reading() is False
        assert clock.pending == 0

        clock.advance(5)
        assert reader.snapshot().cursor == 2

        assert reader.resume_reading() is True
        assert reader.resume_reading() is False
        clock.advance(0.1)
        assert reader.snapshot().cursor == 3

    def test_adjust_speed_keeps_cursor(self, reader, text, clock):
        reader.start_reading(text.id)
        clock.advance(0.35)
        assert reader.snapshot().cursor == 3

        assert reader.adjust_speed(300) is True

        assert reader.snapshot().cursor == 3
        assert clock.pending == 1
        clock.advance(0.19)
        assert reader.snapshot().cursor == 3
        clock.advance(0.01)
        assert reader.snapshot().cursor == 4

    def test_adjust_speed_persists_on_text(self, reader, text, kv):
        reader.start_reading(text.id)
        reader.adjust_speed(450)

        assert reader.get_text(text.id).rate_wpm == 450
        stored = next(t for t in kv.get(TEXTS_KEY) if t["id"] == text.id)
        assert stored["rate_wpm"] == 450

    def test_adjust_speed_while_paused_stays_paused(self, reader, text, clock):
        reader.start_reading(text.id)
        reader.pause_reading()

        reader.adjust_speed(900)

        snap = reader.snapshot()
        assert snap.is_paused
        assert snap.rate_wpm == 900
        assert clock.pending == 0

    @pytest.mark.parametrize("rate", [0, -100])
    def test_adjust_speed_rejects_bad_rate(self, reader, text, rate):
        reader.start_reading(text.id)

        assert reader.adjust_speed(rate) is False
        assert reader.snapshot().rate_wpm == 600

    def test_resume_after_finish_refused(self, reader, text, clock):
        reader.start_reading(text.id)
        clock.advance(2)

        assert reader.resume_reading() is False

    def test_skip_forward_after_finish_stays_finished(self, reader, clock, records):
        short = reader.create_text("Short", "a b c", rate_wpm=180)
        reader.start_reading(short.id)
        clock.advance(2)
        assert len(records) == 1

        reader.skip_forward()

        assert reader.snapshot().progress == 100
        assert reader.resume_reading() is False
        clock.advance(10)
        assert len(records) == 1

    def test_skip_backward_after_finish_reopens(self, reader, text, clock, records):
        reader.start_reading(text.id)
        clock.advance(2)

        reader.skip_backward()

        assert reader.snapshot().cursor == 1
        assert reader.resume_reading() is True

    def test_restart(self, reader, text, clock, records):
        reader.start_reading(text.id)
        clock.advance(2)

        assert reader.restart() is True

        snap = reader.snapshot()
        assert snap.cursor == 0
        assert snap.progress == 0
        assert not snap.is_paused
        clock.advance(0.1)
        assert reader.snapshot().cursor == 1

    def test_end_reading(self, reader, text, clock):
        reader.start_reading(text.id)
        clock.advance(0.3)

        assert reader.end_reading() is True

        assert reader.snapshot().is_active is False
        assert clock.pending == 0
        assert clock.advance(10) == 0
        assert reader.end_reading() is False


class TestLibrary:
    """Test texts, settings and persistence."""

    def test_seeds_sample_text(self, reader):
        assert [t.title for t in reader.texts] == [SAMPLE_TITLE]

    def test_create_uses_default_rate(self, reader):
        reader.update_settings(default_rate_wpm=420)
        created = reader.create_text("New", "some words")
        assert created.rate_wpm == 420

    def test_create_rejects_bad_rate(self, reader):
        with pytest.raises(ValueError):
            reader.create_text("Bad", "words", rate_wpm=0)

    def test_update_text(self, reader, text, clock):
        clock.advance(60)
        updated = reader.update_text(text.id, title="Digits", id="hijack")

        assert updated.title == "Digits"
        assert updated.id == text.id
        assert updated.updated_at == clock.now()

    def test_update_missing_text(self, reader):
        assert reader.update_text("nope", title="x") is None

    def test_delete_text_ends_its_session(self, reader, text, clock):
        reader.start_reading(text.id)

        assert reader.delete_text(text.id) is True

        assert reader.get_text(text.id) is None
        assert reader.current_text() is None
        assert reader.snapshot().is_active is False
        assert clock.pending == 0
        assert reader.delete_text(text.id) is False

    def test_set_current_text(self, reader, text):
        assert reader.set_current_text(text.id) is True
        assert reader.current_text().id == text.id
        assert reader.set_current_text("nope") is False
        assert reader.set_current_text(None) is True
        assert reader.current_text() is None

    def test_round_trip(self, reader, text, kv, clock):
        reader.update_settings(color_mode="bionic", font_size=40)

        reloaded = ReaderEngine(kv, clock)
        reloaded.load()

        assert {t.id for t in reloaded.texts} == {t.id for t in reader.texts}
        assert reloaded.settings.color_mode == "bionic"
        assert reloaded.settings.font_size == 40

    def test_corrupted_library_reseeded(self, kv, clock):
        kv.put(TEXTS_KEY, [{"title": "no id"}])
        kv.put("reader_settings", {"focus_point": "top"})

        reader = ReaderEngine(kv, clock)
        reader.load()

        assert [t.title for t in reader.texts] == [SAMPLE_TITLE]
        assert reader.settings == ReaderSettings()

    @pytest.mark.parametrize(
        "changes",
        [{"focus_point": "top"}, {"default_rate_wpm": 0}, {"font_size": -1}, {"theme": "x"}],
    )
    def test_invalid_settings_raise(self, reader, changes):
        with pytest.raises(ValueError):
            reader.update_settings(**changes)


class TestFocalSplit:
    """Test the optimal recognition point split."""

    @pytest.mark.parametrize(
        "word,expected",
        [
            ("", ("", "", "")),
            ("a", ("", "a", "")),
            ("hello", ("h", "e", "llo")),
            ("reading", ("re", "a", "ding")),
            ("extraordinary", ("extra", "o", "rdinary")),
        ],
    )
    def test_split(self, word, expected):
        assert ReaderEngine.focal_split(word) == expected

    def test_snapshot_lookahead(self, reader, text):
        reader.start_reading(text.id)
        assert reader.snapshot(lookahead=2).upcoming == ["two", "three"]
