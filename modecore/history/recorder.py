"""
History Recorder — append-only, capped, in-memory log of mode events.

The append path (id generation, append, eviction of the oldest entries) is the
only shared write path in the engine and runs under a single mutex. Listeners
run after the lock is released; their failures are logged and never reach
the caller that recorded the entry.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import threading
import time
import uuid
from collections import deque
from dataclasses import asdict, dataclass, fields
from typing import Callable, Deque, Iterable, List, Optional

from ..errors import UnsupportedFormatError
from ..session.events import TransitionEvent
from .sink import PersistenceSink

logger = logging.getLogger(__name__)

ACTIONS = ("activate", "deactivate", "transition")
FORMATS = ("structured", "table")

# table export column order; the last two keep the round-trip lossless
TABLE_COLUMNS = [
    "id", "sessionId", "userId", "modeId", "action", "timestamp",
    "duration", "confidence", "fromMode", "reason",
]

# written for None in the table format; an empty cell reads back as ""
NULL_MARKER = r"\N"


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    session_id: str
    user_id: str
    mode_id: str
    action: str
    timestamp: float                    # unix seconds
    from_mode: Optional[str] = None
    duration: Optional[float] = None    # seconds
    confidence: Optional[float] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        """camelCase keys, as exported."""
        return {_camel(k): v for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        values = {}
        for f in fields(cls):
            raw = data.get(_camel(f.name), data.get(f.name))
            values[f.name] = raw
        if values["action"] not in ACTIONS:
            raise ValueError(f"Unknown history action {values['action']!r}")
        values["timestamp"] = float(values["timestamp"])
        for key in ("duration", "confidence"):
            values[key] = None if values[key] in (None, "") else float(values[key])
        return cls(**values)


@dataclass
class HistoryQuery:
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    mode_id: Optional[str] = None
    action: Optional[str] = None
    from_date: Optional[float] = None
    to_date: Optional[float] = None
    limit: int = 100
    offset: int = 0

    def matches(self, e: HistoryEntry) -> bool:
        if self.session_id and e.session_id != self.session_id:
            return False
        if self.user_id and e.user_id != self.user_id:
            return False
        if self.mode_id and e.mode_id != self.mode_id:
            return False
        if self.action and e.action != self.action:
            return False
        if self.from_date is not None and e.timestamp < self.from_date:
            return False
        if self.to_date is not None and e.timestamp > self.to_date:
            return False
        return True


Listener = Callable[[HistoryEntry], None]


class HistoryRecorder:

    def __init__(
        self,
        max_entries: int = 10_000,
        retention_days: int = 90,
        sink: Optional[PersistenceSink] = None,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.retention_days = retention_days
        self._sink = sink
        self._clock = clock
        self._entries: Deque[HistoryEntry] = deque()
        self._ids: set = set()
        self._pending: List[HistoryEntry] = []       # not yet written to the sink
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []
        self.evicted_count = 0

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def record(
        self,
        session_id: str,
        user_id: str,
        mode_id: str,
        action: str,
        timestamp: Optional[float] = None,
        from_mode: Optional[str] = None,
        duration: Optional[float] = None,
        confidence: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> HistoryEntry:
        if action not in ACTIONS:
            raise ValueError(f"Unknown history action {action!r}")
        with self._lock:
            entry = HistoryEntry(
                id=self._new_id(),
                session_id=session_id,
                user_id=user_id,
                mode_id=mode_id,
                action=action,
                timestamp=self._clock() if timestamp is None else timestamp,
                from_mode=from_mode,
                duration=duration,
                confidence=confidence,
                reason=reason,
            )
            self._append_locked(entry)
        self._notify(entry)
        return entry

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        with self._lock:
            if entry.id in self._ids:
                raise ValueError(f"Duplicate history entry id {entry.id}")
            self._append_locked(entry)
        self._notify(entry)
        return entry

    def record_event(self, event: TransitionEvent) -> HistoryEntry:
        """Event-channel consumer: one entry per state-machine event."""
        return self.record(
            session_id=event.session_id,
            user_id=event.user_id,
            mode_id=event.mode_id,
            action=event.action.value,
            timestamp=event.timestamp,
            from_mode=event.from_mode,
            duration=event.duration,
            confidence=event.confidence,
            reason=event.reason,
        )

    def add_listener(self, fn: Listener) -> None:
        """Register a callback(entry) called after every append."""
        self._listeners.append(fn)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def query(self, q: Optional[HistoryQuery] = None, **filters) -> List[HistoryEntry]:
        """Matching entries, newest first."""
        q = q or HistoryQuery(**filters)
        with self._lock:
            snapshot = list(self._entries)
        # later appends first among equal timestamps
        matched = [e for e in reversed(snapshot) if q.matches(e)]
        matched.sort(key=lambda e: -e.timestamp)
        start = max(q.offset, 0)
        return matched[start:start + max(q.limit, 0)]

    def entries(self) -> List[HistoryEntry]:
        """Snapshot of the whole log, oldest first."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def cleanup(self, now: Optional[float] = None) -> int:
        """Drop entries at or beyond the retention window; return how many."""
        now = self._clock() if now is None else now
        cutoff = now - self.retention_days * 86_400
        with self._lock:
            kept = deque(e for e in self._entries if e.timestamp > cutoff)
            removed = len(self._entries) - len(kept)
            if removed:
                self._entries = kept
                self._ids = {e.id for e in kept}
        if removed:
            logger.info("History cleanup removed %d entries older than %d days",
                        removed, self.retention_days)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._ids.clear()
            self._pending.clear()
            self.evicted_count = 0

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export(self, fmt: str = "structured", entries: Optional[Iterable[HistoryEntry]] = None) -> str:
        rows = list(entries) if entries is not None else self.entries()
        if fmt == "structured":
            return json.dumps([e.to_dict() for e in rows], indent=2)
        if fmt == "table":
            buf = io.StringIO()
            writer = csv.writer(buf, lineterminator="\n")
            writer.writerow(TABLE_COLUMNS)
            for e in rows:
                d = e.to_dict()
                writer.writerow([NULL_MARKER if d[c] is None else d[c] for c in TABLE_COLUMNS])
            return buf.getvalue()
        raise UnsupportedFormatError(fmt)

    def import_entries(self, data: str, fmt: str = "structured") -> int:
        """
        Load exported entries. Ids already in the log are skipped; the log is
        kept in timestamp order and the cap still applies. Returns the number
        of entries added.
        """
        parsed = list(_parse(data, fmt))
        with self._lock:
            fresh: List[HistoryEntry] = []
            for e in parsed:
                # an export can itself contain an id twice; keep the first
                if e.id not in self._ids:
                    self._ids.add(e.id)
                    fresh.append(e)
            merged = sorted(list(self._entries) + fresh, key=lambda e: e.timestamp)
            self._entries = deque(merged)
            if self._sink is not None:
                self._pending.extend(fresh)
            self._evict_locked()
        logger.info("Imported %d history entries (%s)", len(fresh), fmt)
        return len(fresh)

    # ------------------------------------------------------------------
    # Persistence sink
    # ------------------------------------------------------------------

    @property
    def sink(self) -> Optional[PersistenceSink]:
        return self._sink

    def load_from_sink(self, now: Optional[float] = None) -> int:
        if self._sink is None:
            return 0
        loaded = self._sink.load_all()
        with self._lock:
            merged = sorted(
                list(self._entries) + [e for e in loaded if e.id not in self._ids],
                key=lambda e: e.timestamp,
            )
            self._entries = deque(merged)
            self._ids = {e.id for e in merged}
            self._evict_locked()
        removed = self.cleanup(now)
        count = len(self._entries)
        logger.info("Loaded %d history entries from sink (%d past retention)", count, removed)
        return count

    def flush_to_sink(self) -> int:
        if self._sink is None:
            return 0
        with self._lock:
            pending, self._pending = self._pending, []
        if not pending:
            return 0
        try:
            self._sink.append_all(pending)
        except Exception:
            logger.exception("Failed to write %d history entries to sink", len(pending))
            with self._lock:
                self._pending = pending + self._pending
            return 0
        return len(pending)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _new_id(self) -> str:
        entry_id = f"hist_{uuid.uuid4().hex}"
        while entry_id in self._ids:
            entry_id = f"hist_{uuid.uuid4().hex}"
        return entry_id

    def _append_locked(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)
        self._ids.add(entry.id)
        if self._sink is not None:
            self._pending.append(entry)
        self._evict_locked()

    def _evict_locked(self) -> None:
        while len(self._entries) > self.max_entries:
            old = self._entries.popleft()
            self._ids.discard(old.id)
            self.evicted_count += 1

    def _notify(self, entry: HistoryEntry) -> None:
        for listener in self._listeners:
            try:
                listener(entry)
            except Exception:
                logger.exception("History listener failed for entry %s", entry.id)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.capitalize() for p in rest)


def _parse(data: str, fmt: str) -> Iterable[HistoryEntry]:
    if fmt == "structured":
        rows = json.loads(data) if data.strip() else []
        if not isinstance(rows, list):
            raise ValueError("Structured history must be a JSON array")
        return [HistoryEntry.from_dict(r) for r in rows]
    if fmt == "table":
        reader = csv.DictReader(io.StringIO(data))
        out = []
        for row in reader:
            cleaned = {k: (None if v == NULL_MARKER else v) for k, v in row.items() if k}
            out.append(HistoryEntry.from_dict(cleaned))
        return out
    raise UnsupportedFormatError(fmt)
