"""
Key-Value State Store for studyhabits.

Every engine persists its snapshot as one JSON document per key:
- decks / cards / current_deck          (ItemStore)
- timer_state / timer_settings          (PomodoroEngine)
- reader_texts / reader_settings / current_text  (ReaderEngine)
- study_sessions                        (StudyLog)

Writes are synchronous, last-write-wins and never raise: a failed write is
logged and dropped. Reads of a corrupted value return None so callers can
fall back to defaults.

Database location: ~/.studyhabits/state.db (see Settings.state_db_path)
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from loguru import logger


class KeyValueStore(Protocol):
    """Persistence capability the engines depend on."""

    def get(self, key: str) -> Any | None: ...

    def put(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


# =============================================================================
# In-memory store
# =============================================================================


class MemoryStateStore:
    """
    Dict-backed store.

    Values are kept as serialised JSON text so a round trip behaves exactly
    like the SQLite store (no shared mutable objects between writer and reader).
    """

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.put(key, value)

    def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Discarding corrupted value for {}: {}", key, exc)
            return None

    def put(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def put_raw(self, key: str, raw: str) -> None:
        """Store text verbatim (lets tests plant corrupted snapshots)."""
        self._data[key] = raw

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


# =============================================================================
# SQLite store
# =============================================================================


class StateStore:
    """
    SQLite-backed key-value persistence.

    Handles:
    - One row per snapshot key, value stored as JSON text
    - Last-write-wins upserts
    - Tolerant reads (corrupted JSON reads as missing)
    """

    DEFAULT_DB_PATH = Path.home() / ".studyhabits" / "state.db"

    def __init__(self, db_path: Path | None = None):
        """
        Initialize the state store.

        Args:
            db_path: Custom database path (defaults to ~/.studyhabits/state.db)
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.debug(f"StateStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """)
        self.conn.commit()

    # =========================================================================
    # Key-Value Operations
    # =========================================================================

    def get(self, key: str) -> Any | None:
        """
        Read a snapshot.

        Args:
            key: Snapshot key

        Returns:
            Decoded JSON value, or None when missing or unreadable
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT value FROM kv_state WHERE key = ?", (key,))
            row = cursor.fetchone()
        except sqlite3.Error as exc:
            logger.warning("Could not read {}: {}", key, exc)
            return None

        if row is None:
            return None

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as exc:
            logger.warning("Discarding corrupted value for {}: {}", key, exc)
            return None

    def put(self, key: str, value: Any) -> None:
        """
        Write a snapshot (upsert).

        Args:
            key: Snapshot key
            value: JSON-serialisable value
        """
        try:
            self._write(key, json.dumps(value))
        except (TypeError, ValueError, sqlite3.Error) as exc:
            logger.warning("Could not save {}: {}", key, exc)

    def put_raw(self, key: str, raw: str) -> None:
        """Store text verbatim, bypassing JSON encoding."""
        try:
            self._write(key, raw)
        except sqlite3.Error as exc:
            logger.warning("Could not save {}: {}", key, exc)

    def _write(self, key: str, raw: str) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO kv_state (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
        """,
            (key, raw, datetime.now(timezone.utc).isoformat()),
        )
        self.conn.commit()

    def delete(self, key: str) -> None:
        """Remove a snapshot if present."""
        try:
            self.conn.execute("DELETE FROM kv_state WHERE key = ?", (key,))
            self.conn.commit()
        except sqlite3.Error as exc:
            logger.warning("Could not delete {}: {}", key, exc)

    def keys(self) -> list[str]:
        """List stored snapshot keys."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT key FROM kv_state ORDER BY key")
        return [row["key"] for row in cursor.fetchall()]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
