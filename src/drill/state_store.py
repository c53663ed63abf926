"""
Session Persistence Adapters.

Stores DrillSessions outside the process:
- MemorySessionStore: in-process dict (tests, embedding)
- JsonSessionStore: one JSON file per session (offline fallback)
- SqliteSessionStore: session + per-scenario review tables

The scheduler never calls these; the caller saves after each answer and is
responsible for retrying on failure. Everything loaded goes through
DrillSession.from_dict so corrupt state is normalised, not fatal.

Default location: ~/.diamond_iq/
"""

from __future__ import annotations

import json
import re
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger

from .exceptions import SessionStoreError
from .models import Clock, DrillSession, ReviewRecord, create_session, system_clock

DEFAULT_STATE_DIR = Path.home() / ".diamond_iq"


class SessionStore(ABC):
    """Persistence contract for drill sessions."""

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or system_clock

    @abstractmethod
    def save(self, session: DrillSession) -> None:
        """Persist the full session."""

    @abstractmethod
    def load(self, session_id: str) -> DrillSession | None:
        """Load a session, or None if it does not exist."""

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """Remove a session and all of its records."""

    def save_records(self, session: DrillSession, item_ids: list[str]) -> None:
        """
        Persist only the given records plus session-level fields.

        Adapters that store sessions as a single document just save everything.
        """
        self.save(session)

    def load_or_create(self, session_id: str) -> DrillSession:
        """Load a session, creating (but not saving) an empty one if missing."""
        session = self.load(session_id)
        if session is None:
            logger.info(f"Starting new drill session {session_id!r}")
            session = create_session(session_id, now=self.clock())
        return session

    def reset(self, session_id: str) -> DrillSession:
        """
        Discard every review record for a session.

        Returns:
            A fresh, saved, empty session with the same id
        """
        self.delete(session_id)
        session = create_session(session_id, now=self.clock())
        self.save(session)
        logger.info(f"Reset drill session {session_id!r}")
        return session


# =============================================================================
# In-Memory Store
# =============================================================================


class MemorySessionStore(SessionStore):
    """Keeps serialised sessions in a dict."""

    def __init__(self, clock: Clock | None = None):
        super().__init__(clock)
        self._sessions: dict[str, dict] = {}

    def save(self, session: DrillSession) -> None:
        # Stored as plain data so later mutations of the live session don't leak in
        self._sessions[session.id] = json.loads(json.dumps(session.to_dict()))

    def load(self, session_id: str) -> DrillSession | None:
        data = self._sessions.get(session_id)
        if data is None:
            return None
        return DrillSession.from_dict(data, now=self.clock())

    def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


# =============================================================================
# JSON File Store
# =============================================================================


class JsonSessionStore(SessionStore):
    """One UTF-8 JSON document per session id."""

    def __init__(self, state_dir: Path | None = None, clock: Clock | None = None):
        """
        Initialize the JSON store.

        Args:
            state_dir: Directory for session files (defaults to ~/.diamond_iq)
            clock: Millisecond time source
        """
        super().__init__(clock)
        self.state_dir = Path(state_dir) if state_dir else DEFAULT_STATE_DIR
        self.state_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"JsonSessionStore initialized at {self.state_dir}")

    def path_for(self, session_id: str) -> Path:
        safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", session_id) or "_"
        return self.state_dir / f"{safe_name}.json"

    def save(self, session: DrillSession) -> None:
        path = self.path_for(session.id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(session.to_dict(), f, ensure_ascii=False, indent=2)
            tmp_path.replace(path)
        except OSError as e:
            raise SessionStoreError(f"Failed to save session {session.id!r}: {e}") from e

    def load(self, session_id: str) -> DrillSession | None:
        path = self.path_for(session_id)
        if not path.exists():
            return None

        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring corrupt session file {path}: {e}")
            return None
        except OSError as e:
            raise SessionStoreError(f"Failed to read session {session_id!r}: {e}") from e

        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed session file {path}")
            return None

        raw.setdefault("id", session_id)
        return DrillSession.from_dict(raw, now=self.clock())

    def delete(self, session_id: str) -> None:
        try:
            self.path_for(session_id).unlink(missing_ok=True)
        except OSError as e:
            raise SessionStoreError(f"Failed to delete session {session_id!r}: {e}") from e


# =============================================================================
# SQLite Store
# =============================================================================


class SqliteSessionStore(SessionStore):
    """
    SQLite-backed session persistence.

    Tables:
    - drill_session: one row per session (timestamps, best streak)
    - review_record: one row per (session, scenario), upserted on save
    """

    def __init__(self, db_path: Path | None = None, clock: Clock | None = None):
        """
        Initialize the SQLite store.

        Args:
            db_path: Database path (defaults to ~/.diamond_iq/drill.db)
            clock: Millisecond time source
        """
        super().__init__(clock)
        self.db_path = Path(db_path) if db_path else DEFAULT_STATE_DIR / "drill.db"
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.info(f"SqliteSessionStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        try:
            cursor = self.conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS drill_session (
                    id TEXT PRIMARY KEY,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    best_streak_ever INTEGER DEFAULT 0
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS review_record (
                    session_id TEXT NOT NULL,
                    item_id TEXT NOT NULL,
                    last_shown_at INTEGER,
                    last_answer_quality TEXT,
                    correct_count INTEGER DEFAULT 0,
                    partial_count INTEGER DEFAULT 0,
                    incorrect_count INTEGER DEFAULT 0,
                    timeout_count INTEGER DEFAULT 0,
                    repetitions INTEGER DEFAULT 0,
                    ease_factor REAL DEFAULT 2.5,
                    interval_days INTEGER DEFAULT 1,
                    next_due_at INTEGER,
                    PRIMARY KEY (session_id, item_id),
                    FOREIGN KEY (session_id) REFERENCES drill_session(id)
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_review_record_due
                ON review_record(session_id, next_due_at)
            """)
            self.conn.commit()
        except sqlite3.Error as e:
            raise SessionStoreError(f"Failed to initialise {self.db_path}: {e}") from e

    def _upsert_session(self, cursor: sqlite3.Cursor, session: DrillSession) -> None:
        cursor.execute(
            """
            INSERT INTO drill_session (id, created_at, updated_at, best_streak_ever)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                updated_at = excluded.updated_at,
                best_streak_ever = excluded.best_streak_ever
        """,
            (session.id, session.created_at, session.updated_at, session.best_streak_ever),
        )

    def _upsert_records(self, cursor: sqlite3.Cursor, session_id: str, records: list[ReviewRecord]) -> None:
        cursor.executemany(
            """
            INSERT INTO review_record (
                session_id, item_id, last_shown_at, last_answer_quality,
                correct_count, partial_count, incorrect_count, timeout_count,
                repetitions, ease_factor, interval_days, next_due_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(session_id, item_id) DO UPDATE SET
                last_shown_at = excluded.last_shown_at,
                last_answer_quality = excluded.last_answer_quality,
                correct_count = excluded.correct_count,
                partial_count = excluded.partial_count,
                incorrect_count = excluded.incorrect_count,
                timeout_count = excluded.timeout_count,
                repetitions = excluded.repetitions,
                ease_factor = excluded.ease_factor,
                interval_days = excluded.interval_days,
                next_due_at = excluded.next_due_at
        """,
            [
                (
                    session_id,
                    record.item_id,
                    record.last_shown_at,
                    record.last_answer_quality.value if record.last_answer_quality else None,
                    record.correct_count,
                    record.partial_count,
                    record.incorrect_count,
                    record.timeout_count,
                    record.repetitions,
                    record.ease_factor,
                    record.interval_days,
                    record.next_due_at,
                )
                for record in records
            ],
        )

    def save(self, session: DrillSession) -> None:
        self.save_records(session, list(session.records))

    def save_records(self, session: DrillSession, item_ids: list[str]) -> None:
        records = [session.records[item_id] for item_id in item_ids if item_id in session.records]
        try:
            cursor = self.conn.cursor()
            self._upsert_session(cursor, session)
            self._upsert_records(cursor, session.id, records)
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise SessionStoreError(f"Failed to save session {session.id!r}: {e}") from e

    def load(self, session_id: str) -> DrillSession | None:
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM drill_session WHERE id = ?", (session_id,))
            row = cursor.fetchone()
            if row is None:
                return None

            cursor.execute("SELECT * FROM review_record WHERE session_id = ?", (session_id,))
            record_rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise SessionStoreError(f"Failed to load session {session_id!r}: {e}") from e

        records = {}
        for record_row in record_rows:
            data = dict(record_row)
            data.pop("session_id", None)
            records[data["item_id"]] = data

        return DrillSession.from_dict(
            {
                "id": row["id"],
                "created_at": row["created_at"],
                "updated_at": row["updated_at"],
                "best_streak_ever": row["best_streak_ever"],
                "records": records,
            },
            now=self.clock(),
        )

    def delete(self, session_id: str) -> None:
        try:
            cursor = self.conn.cursor()
            cursor.execute("DELETE FROM review_record WHERE session_id = ?", (session_id,))
            cursor.execute("DELETE FROM drill_session WHERE id = ?", (session_id,))
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise SessionStoreError(f"Failed to delete session {session_id!r}: {e}") from e

    def count_due(self, session_id: str) -> int:
        """Count scenarios due now for a session."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT COUNT(*) AS cnt FROM review_record WHERE session_id = ? AND next_due_at <= ?",
            (session_id, self.clock()),
        )
        return cursor.fetchone()["cnt"]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None


def open_store(backend: str, state_dir: Path | None = None, clock: Clock | None = None) -> SessionStore:
    """
    Build a store for a configured backend name.

    Args:
        backend: "json", "sqlite" or "memory"
        state_dir: Directory for file-based backends
        clock: Millisecond time source

    Raises:
        SessionStoreError: Unknown backend
    """
    backend = backend.strip().lower()
    if backend == "json":
        return JsonSessionStore(state_dir=state_dir, clock=clock)
    if backend == "sqlite":
        db_path = (Path(state_dir) if state_dir else DEFAULT_STATE_DIR) / "drill.db"
        return SqliteSessionStore(db_path=db_path, clock=clock)
    if backend == "memory":
        return MemorySessionStore(clock=clock)
    raise SessionStoreError(f"Unknown store backend: {backend!r}")
