"""
RSVP Reader Engine.

Rapid Serial Visual Presentation: a text is split into words and shown one
at a time at a fixed words-per-minute rate. The engine owns the text
library, the reader settings and at most one playback session.

Playback:
- A tick fires every 60 / rate_wpm seconds while the session is active and
  not paused, and moves the cursor one word forward.
- A tick landing on the last word finishes the session: playback pauses,
  progress becomes 100 and an "rsvp" study session is logged.
- Skips move the cursor by a fixed step, clamped to the text.
- Changing speed re-arms the tick at the new interval; the cursor is kept.

Persisted keys:
- reader_texts     list of ReaderText
- reader_settings  ReaderSettings
- current_text     selected text id
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from studyhabits.core.clock import Clock, TickHandle, ensure_utc
from studyhabits.delivery.deck import new_id
from studyhabits.delivery.state_store import KeyValueStore

from .study_log import SessionListener, StudyMethod, StudySessionRecord

TEXTS_KEY = "reader_texts"
SETTINGS_KEY = "reader_settings"
CURRENT_TEXT_KEY = "current_text"

DEFAULT_SKIP_STEP = 10
DEFAULT_TEXT_COLOR = "#3B82F6"

SAMPLE_TITLE = "Sample text"
SAMPLE_CONTENT = (
    "This is a sample text to practise speed reading. RSVP (Rapid Serial Visual "
    "Presentation) trains your reading speed by showing words one at a time at a "
    "steady pace."
)


class ReaderSettings(BaseModel):
    """Display preferences and the rate given to new texts."""

    model_config = ConfigDict(extra="forbid")

    default_rate_wpm: int = Field(default=300, gt=0)
    focus_point: Literal["center", "left", "right"] = "center"
    show_progress_bar: bool = True
    color_mode: Literal["normal", "dark", "bionic"] = "normal"
    font_size: int = Field(default=32, gt=0)


@dataclass
class ReaderText:
    """A text in the reading library."""

    id: str
    title: str
    content: str
    color: str = DEFAULT_TEXT_COLOR
    rate_wpm: int = 300
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_read_at: datetime | None = None

    def __post_init__(self) -> None:
        for name in ("created_at", "updated_at", "last_read_at"):
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, ensure_utc(value))

    @property
    def word_count(self) -> int:
        return len(tokenize(self.content))


TEXT_LIST = TypeAdapter(list[ReaderText])


@dataclass
class PlaybackState:
    """Transient state of the text being read."""

    text_id: str
    title: str
    tokens: list[str]
    rate_wpm: int
    started_at: datetime
    cursor: int = 0
    paused: bool = False
    progress: float = 0.0

    @property
    def finished(self) -> bool:
        return self.progress >= 100


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Read-only view of the playback session."""

    is_active: bool = False
    is_paused: bool = False
    cursor: int = 0
    token: str = ""
    total: int = 0
    rate_wpm: int = 0
    progress: float = 0.0
    text_id: str | None = None
    title: str = ""
    upcoming: list[str] = field(default_factory=list)


def tokenize(content: str) -> list[str]:
    """Split on whitespace, dropping empty tokens."""
    return content.split()


def _rate_ok(rate_wpm: int | None) -> bool:
    return rate_wpm is not None and rate_wpm > 0


class ReaderEngine:
    """
    Paced word-by-word playback over a library of texts.

    One scheduled callback at most; every command that changes the pace or
    stops playback cancels it before doing anything else.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock,
        settings: ReaderSettings | None = None,
        on_session_complete: SessionListener | None = None,
        skip_step: int = DEFAULT_SKIP_STEP,
    ):
        """
        Initialize the reader.

        Args:
            store: Persistence gateway
            clock: Time source and callback scheduler
            settings: Settings used when none are persisted
            on_session_complete: Listener for finished readings
            skip_step: Words moved by skip_forward/skip_backward
        """
        self.store = store
        self.clock = clock
        self.default_settings = settings or ReaderSettings()
        self.settings = self.default_settings
        self.on_session_complete = on_session_complete
        self.skip_step = skip_step

        self._texts: list[ReaderText] = []
        self._current_text_id: str | None = None
        self.session: PlaybackState | None = None
        self._handle: TickHandle | None = None

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> None:
        """Read texts, settings and the current text; seed a sample text if empty."""
        self._texts = self._load_texts()
        self.settings = self._load_settings()

        current = self.store.get(CURRENT_TEXT_KEY)
        self._current_text_id = current if isinstance(current, str) else None

        if not self._texts:
            now = self.clock.now()
            self._texts.append(
                ReaderText(
                    id=new_id(),
                    title=SAMPLE_TITLE,
                    content=SAMPLE_CONTENT,
                    rate_wpm=self.settings.default_rate_wpm,
                    created_at=now,
                    updated_at=now,
                )
            )
        logger.debug("Loaded {} reader texts", len(self._texts))

    def _load_texts(self) -> list[ReaderText]:
        raw = self.store.get(TEXTS_KEY)
        if raw is None:
            return []
        try:
            return TEXT_LIST.validate_python(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid reader texts ({} errors)", exc.error_count())
            return []

    def _load_settings(self) -> ReaderSettings:
        raw = self.store.get(SETTINGS_KEY)
        if raw is None:
            return self.default_settings
        try:
            return ReaderSettings.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid reader settings ({} errors)", exc.error_count())
            return self.default_settings

    def save(self) -> None:
        self.store.put(TEXTS_KEY, TEXT_LIST.dump_python(self._texts, mode="json"))
        self.store.put(SETTINGS_KEY, self.settings.model_dump(mode="json"))
        if self._current_text_id:
            self.store.put(CURRENT_TEXT_KEY, self._current_text_id)
        else:
            self.store.delete(CURRENT_TEXT_KEY)

    # =========================================================================
    # Text library
    # =========================================================================

    @property
    def texts(self) -> list[ReaderText]:
        return list(self._texts)

    def get_text(self, text_id: str) -> ReaderText | None:
        return next((text for text in self._texts if text.id == text_id), None)

    def create_text(
        self,
        title: str,
        content: str,
        color: str = DEFAULT_TEXT_COLOR,
        rate_wpm: int | None = None,
    ) -> ReaderText:
        """
        Add a text to the library.

        Raises:
            ValueError: If rate_wpm is not positive
        """
        rate_wpm = self.settings.default_rate_wpm if rate_wpm is None else rate_wpm
        if not _rate_ok(rate_wpm):
            raise ValueError(f"rate_wpm must be positive, got {rate_wpm}")

        now = self.clock.now()
        text = ReaderText(
            id=new_id(),
            title=title,
            content=content,
            color=color,
            rate_wpm=rate_wpm,
            created_at=now,
            updated_at=now,
        )
        self._texts.append(text)
        self.save()
        logger.info("Created text {} ({} words)", text.title, text.word_count)
        return text

    def update_text(self, text_id: str, **fields) -> ReaderText | None:
        """Update title, content, color or rate_wpm of a text."""
        allowed = {key: value for key, value in fields.items() if key in ("title", "content", "color", "rate_wpm")}
        if "rate_wpm" in allowed and not _rate_ok(allowed["rate_wpm"]):
            raise ValueError(f"rate_wpm must be positive, got {allowed['rate_wpm']}")

        for index, text in enumerate(self._texts):
            if text.id == text_id:
                self._texts[index] = replace(text, updated_at=self.clock.now(), **allowed)
                self.save()
                return self._texts[index]
        return None

    def delete_text(self, text_id: str) -> bool:
        if self.get_text(text_id) is None:
            return False

        if self.session is not None and self.session.text_id == text_id:
            self.end_reading()
        self._texts = [text for text in self._texts if text.id != text_id]
        if self._current_text_id == text_id:
            self._current_text_id = None
        self.save()
        return True

    def current_text(self) -> ReaderText | None:
        if not self._current_text_id:
            return None
        return self.get_text(self._current_text_id)

    def set_current_text(self, text_id: str | None) -> bool:
        if text_id is not None and self.get_text(text_id) is None:
            return False
        self._current_text_id = text_id
        self.save()
        return True

    def update_settings(self, **changes) -> ReaderSettings:
        """
        Change reader settings.

        Raises:
            ValueError: If a value is invalid or the field is unknown
        """
        self.settings = ReaderSettings.model_validate({**self.settings.model_dump(), **changes})
        self.save()
        return self.settings

    # =========================================================================
    # Playback commands
    # =========================================================================

    @property
    def is_active(self) -> bool:
        return self.session is not None

    def start_reading(self, text_id: str) -> bool:
        """
        Begin playback of a text from its first word.

        Returns:
            False when the text is unknown or has no words
        """
        text = self.get_text(text_id)
        if text is None:
            logger.debug("start_reading ignored: unknown text {}", text_id)
            return False

        tokens = tokenize(text.content)
        if not tokens:
            logger.debug("start_reading ignored: text {} is empty", text_id)
            return False

        self._cancel()
        now = self.clock.now()
        self._replace_text(replace(text, last_read_at=now))
        self._current_text_id = text.id
        self.save()

        self.session = PlaybackState(
            text_id=text.id,
            title=text.title,
            tokens=tokens,
            rate_wpm=text.rate_wpm if _rate_ok(text.rate_wpm) else self.settings.default_rate_wpm,
            started_at=now,
        )
        self._arm()
        logger.info("Reading {} ({} words at {} wpm)", text.title, len(tokens), self.session.rate_wpm)
        return True

    def pause_reading(self) -> bool:
        if self.session is None or self.session.paused:
            return False
        self._cancel()
        self.session.paused = True
        return True

    def resume_reading(self) -> bool:
        """Resume ticking; a finished reading has to be restarted instead."""
        if self.session is None or not self.session.paused or self.session.finished:
            return False
        self.session.paused = False
        self._arm()
        return True

    def adjust_speed(self, rate_wpm: int) -> bool:
        """
        Change the rate of the current reading and of its text.

        The cursor is left where it is; ticking restarts at the new interval
        only if playback is running.
        """
        if self.session is None or not _rate_ok(rate_wpm):
            logger.debug("adjust_speed ignored: rate={} active={}", rate_wpm, self.is_active)
            return False

        self._cancel()
        self.session.rate_wpm = rate_wpm

        text = self.get_text(self.session.text_id)
        if text is not None:
            self._replace_text(replace(text, rate_wpm=rate_wpm, updated_at=self.clock.now()))
            self.save()

        if not self.session.paused:
            self._arm()
        return True

    def skip_forward(self) -> bool:
        return self._move_cursor(self.skip_step)

    def skip_backward(self) -> bool:
        return self._move_cursor(-self.skip_step)

    def restart(self) -> bool:
        """Rewind to the first word and play."""
        if self.session is None:
            return False
        self._cancel()
        self.session.cursor = 0
        self.session.progress = 0.0
        self.session.paused = False
        self._arm()
        return True

    def end_reading(self) -> bool:
        if self.session is None:
            return False
        self._cancel()
        logger.debug("Reading {} ended at word {}", self.session.title, self.session.cursor)
        self.session = None
        return True

    # =========================================================================
    # Ticking
    # =========================================================================

    def _move_cursor(self, step: int) -> bool:
        session = self.session
        if session is None:
            return False
        last = len(session.tokens) - 1
        was_finished = session.finished
        session.cursor = min(max(session.cursor + step, 0), last)
        if was_finished and session.cursor == last:
            # Still on the last word of a finished reading; only a rewind reopens it.
            return True
        session.progress = session.cursor / len(session.tokens) * 100
        return True

    def _arm(self) -> None:
        self._cancel()
        self._handle = self.clock.call_later(60.0 / self.session.rate_wpm, self._on_tick)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _on_tick(self) -> None:
        self._handle = None
        session = self.session
        if session is None or session.paused:
            return

        if session.cursor >= len(session.tokens) - 1:
            self._finish(session)
            return

        session.cursor += 1
        session.progress = session.cursor / len(session.tokens) * 100
        if self.session is session and not session.paused and self._handle is None:
            self._arm()

    def _finish(self, session: PlaybackState) -> None:
        session.paused = True
        session.progress = 100.0

        now = self.clock.now()
        elapsed = (now - session.started_at).total_seconds()
        logger.info("Finished reading {} in {:.0f}s", session.title, elapsed)

        if self.on_session_complete is not None:
            self.on_session_complete(
                StudySessionRecord(
                    date=now,
                    method=StudyMethod.RSVP,
                    duration_minutes=max(1, round(elapsed / 60)),
                    topic=session.title,
                )
            )

    def _replace_text(self, updated: ReaderText) -> None:
        self._texts = [updated if text.id == updated.id else text for text in self._texts]

    # =========================================================================
    # Snapshot
    # =========================================================================

    def snapshot(self, lookahead: int = 0) -> PlaybackSnapshot:
        session = self.session
        if session is None:
            return PlaybackSnapshot()
        return PlaybackSnapshot(
            is_active=True,
            is_paused=session.paused,
            cursor=session.cursor,
            token=session.tokens[session.cursor],
            total=len(session.tokens),
            rate_wpm=session.rate_wpm,
            progress=session.progress,
            text_id=session.text_id,
            title=session.title,
            upcoming=session.tokens[session.cursor + 1 : session.cursor + 1 + lookahead],
        )

    @staticmethod
    def focal_split(word: str) -> tuple[str, str, str]:
        """
        Split a word around its optimal recognition point.

        Short words (up to 5 letters) focus a third of the way in, longer
        ones at 40%.

        Returns:
            (before, focus, after)
        """
        if not word:
            return "", "", ""
        index = len(word) // 3 if len(word) <= 5 else int(len(word) * 0.4)
        return word[:index], word[index : index + 1], word[index + 1 :]
