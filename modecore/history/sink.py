"""
Persistence sinks for the history log.

The recorder only needs two calls: load everything at startup and append a
batch of new entries. SQLiteHistorySink stores them in a single local table.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, List, Protocol, Sequence

if TYPE_CHECKING:
    from .recorder import HistoryEntry


class PersistenceSink(Protocol):

    def load_all(self) -> List["HistoryEntry"]: ...

    def append_all(self, entries: Sequence["HistoryEntry"]) -> None: ...


class SQLiteHistorySink:
    """Append-only SQLite store; duplicate ids are ignored on insert."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def append_all(self, entries: Sequence["HistoryEntry"]) -> None:
        with self._conn() as conn:
            conn.executemany(
                """
                INSERT OR IGNORE INTO history
                    (id, session_id, user_id, mode_id, action, timestamp,
                     from_mode, duration, confidence, reason)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (e.id, e.session_id, e.user_id, e.mode_id, e.action, e.timestamp,
                     e.from_mode, e.duration, e.confidence, e.reason)
                    for e in entries
                ],
            )

    def load_all(self) -> List["HistoryEntry"]:
        from .recorder import HistoryEntry

        with self._conn() as conn:
            rows = conn.execute(
                "SELECT id, session_id, user_id, mode_id, action, timestamp, "
                "from_mode, duration, confidence, reason "
                "FROM history ORDER BY timestamp ASC, rowid ASC"
            ).fetchall()
        return [
            HistoryEntry(
                id=r[0], session_id=r[1], user_id=r[2], mode_id=r[3], action=r[4],
                timestamp=r[5], from_mode=r[6], duration=r[7], confidence=r[8], reason=r[9],
            )
            for r in rows
        ]

    def count(self) -> int:
        with self._conn() as conn:
            return conn.execute("SELECT COUNT(*) FROM history").fetchone()[0]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS history (
                    id          TEXT PRIMARY KEY,
                    session_id  TEXT NOT NULL,
                    user_id     TEXT NOT NULL,
                    mode_id     TEXT NOT NULL,
                    action      TEXT NOT NULL,
                    timestamp   REAL NOT NULL,
                    from_mode   TEXT,
                    duration    REAL,
                    confidence  REAL,
                    reason      TEXT
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_history_ts ON history(timestamp)")

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()
