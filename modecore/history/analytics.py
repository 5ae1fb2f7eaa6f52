"""
Analytics Aggregator — session summaries and per-user profiles derived from
the history log.

Summaries are updated incrementally as each entry is recorded and rebuilt in
full by the periodic refresh. Incremental counts include entries the recorder
has since evicted; a rebuild only sees what is still in the log. Neither is a
source of truth: the log is.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Deque, Dict, Iterable, List, Optional, Set

import numpy as np

from .recorder import HistoryEntry

logger = logging.getLogger(__name__)

LEARNING_WINDOW = 20            # entries compared at each end of the history
PEAK_HOUR_RATIO = 0.8           # hours within 80% of the busiest hour
_ASSIGNED_ACTIONS = ("activate", "transition")
_MAX_PREFERENCE_WINDOW = 100


@dataclass
class SessionSummary:
    session_id: str
    user_id: str
    start_time: float
    end_time: float
    duration: float = 0.0
    total_mode_transitions: int = 0
    unique_modes_used: List[str] = field(default_factory=list)
    most_used_mode: str = ""
    average_confidence: float = 0.0
    closed: bool = False
    mode_counts: Dict[str, int] = field(default_factory=dict)
    _confidence_sum: float = field(default=0.0, repr=False)
    _confidence_n: int = field(default=0, repr=False)

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if not k.startswith("_")}


@dataclass
class ModePreference:
    mode_id: str
    percentage: float


@dataclass
class UserAnalytics:
    user_id: str
    total_entries: int
    total_sessions: int
    total_duration: float
    average_session_duration: float
    mode_preferences: List[ModePreference]
    peak_usage_hours: List[int]
    learning_progress: float
    last_active: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ModeStatistics:
    mode_id: str
    total_usage: int
    unique_users: int
    unique_sessions: int
    average_duration: float
    average_confidence: float
    usage_by_hour: List[int]
    usage_by_weekday: List[int]         # Monday first

    def to_dict(self) -> dict:
        return asdict(self)


class _UserState:
    def __init__(self):
        self.entries = 0
        self.mode_counts: Dict[str, int] = {}
        self.hours = np.zeros(24, dtype=np.int64)
        self.sessions: Set[str] = set()
        self.early: List[float] = []
        self.recent: Deque[float] = deque(maxlen=LEARNING_WINDOW)
        self.confidence_n = 0
        self.assigned: Deque[str] = deque(maxlen=_MAX_PREFERENCE_WINDOW)
        self.last_active = 0.0


class AnalyticsAggregator:

    def __init__(self):
        self._summaries: Dict[str, SessionSummary] = {}
        self._users: Dict[str, _UserState] = {}
        self.last_rebuild: Optional[float] = None

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(self, entry: HistoryEntry) -> None:
        """Fold one entry into its session summary and its user's profile."""
        self._update_session(entry)
        self._update_user(entry)

    def rebuild(self, entries: Iterable[HistoryEntry]) -> int:
        """Recompute everything from *entries*; idempotent."""
        ordered = sorted(entries, key=lambda e: e.timestamp)
        self._summaries = {}
        self._users = {}
        for e in ordered:
            self.ingest(e)
        self.last_rebuild = datetime.now(tz=timezone.utc).timestamp()
        logger.debug("Analytics rebuilt from %d entries", len(ordered))
        return len(ordered)

    # ------------------------------------------------------------------
    # Session summaries
    # ------------------------------------------------------------------

    def session_summary(self, session_id: str) -> Optional[SessionSummary]:
        return self._summaries.get(session_id)

    def user_sessions(self, user_id: str, limit: int = 20) -> List[SessionSummary]:
        """The user's sessions, most recently started first."""
        sessions = [s for s in self._summaries.values() if s.user_id == user_id]
        sessions.sort(key=lambda s: s.start_time, reverse=True)
        return sessions[:limit]

    # ------------------------------------------------------------------
    # User analytics
    # ------------------------------------------------------------------

    def user_analytics(self, user_id: str) -> Optional[UserAnalytics]:
        """None for a user with no recorded entries."""
        state = self._users.get(user_id)
        if state is None or state.entries == 0:
            return None

        preferences = [
            ModePreference(mode_id=m, percentage=round(100.0 * c / state.entries, 2))
            for m, c in state.mode_counts.items()
        ]
        preferences.sort(key=lambda p: -p.percentage)

        sessions = [self._summaries[s] for s in state.sessions if s in self._summaries]
        total_duration = float(sum(s.duration for s in sessions))

        return UserAnalytics(
            user_id=user_id,
            total_entries=state.entries,
            total_sessions=len(state.sessions),
            total_duration=round(total_duration, 3),
            average_session_duration=round(total_duration / max(len(state.sessions), 1), 3),
            mode_preferences=preferences,
            peak_usage_hours=peak_hours(state.hours),
            learning_progress=_learning_progress(state),
            last_active=state.last_active,
        )

    def preferred_modes(self, user_id: str, window: int = 10, top_n: int = 3) -> List[str]:
        """
        The *top_n* most frequent modes among the user's last *window*
        assigned modes; on equal counts the more recently used mode first.
        """
        state = self._users.get(user_id)
        if state is None or window <= 0 or top_n <= 0:
            return []
        recent = list(state.assigned)[-window:]
        counts: Dict[str, int] = {}
        last_seen: Dict[str, int] = {}
        for i, mode_id in enumerate(recent):
            counts[mode_id] = counts.get(mode_id, 0) + 1
            last_seen[mode_id] = i
        ranked = sorted(counts, key=lambda m: (-counts[m], -last_seen[m]))
        return ranked[:top_n]

    def users(self) -> List[str]:
        return list(self._users)

    def status(self) -> dict:
        return {
            "sessions": len(self._summaries),
            "users": len(self._users),
            "last_rebuild": self.last_rebuild,
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _update_session(self, e: HistoryEntry) -> None:
        s = self._summaries.get(e.session_id)
        if s is None:
            s = SessionSummary(
                session_id=e.session_id,
                user_id=e.user_id,
                start_time=e.timestamp,
                end_time=e.timestamp,
            )
            self._summaries[e.session_id] = s

        s.start_time = min(s.start_time, e.timestamp)
        s.end_time = max(s.end_time, e.timestamp)
        s.duration = round(s.end_time - s.start_time, 3)

        if e.action == "transition":
            s.total_mode_transitions += 1
        if e.action == "deactivate":
            s.closed = True
        if e.mode_id not in s.unique_modes_used:
            s.unique_modes_used.append(e.mode_id)

        s.mode_counts[e.mode_id] = s.mode_counts.get(e.mode_id, 0) + 1
        # strict > keeps the first-seen mode on equal counts
        best, best_count = "", 0
        for mode_id, count in s.mode_counts.items():
            if count > best_count:
                best, best_count = mode_id, count
        s.most_used_mode = best

        if e.confidence is not None:
            s._confidence_sum += e.confidence
            s._confidence_n += 1
            s.average_confidence = round(s._confidence_sum / s._confidence_n, 4)

    def _update_user(self, e: HistoryEntry) -> None:
        state = self._users.get(e.user_id)
        if state is None:
            state = self._users[e.user_id] = _UserState()

        state.entries += 1
        state.mode_counts[e.mode_id] = state.mode_counts.get(e.mode_id, 0) + 1
        state.hours[_utc(e.timestamp).hour] += 1
        state.sessions.add(e.session_id)
        state.last_active = max(state.last_active, e.timestamp)

        if e.confidence is not None:
            if len(state.early) < LEARNING_WINDOW:
                state.early.append(e.confidence)
            state.recent.append(e.confidence)
            state.confidence_n += 1

        if e.action in _ASSIGNED_ACTIONS:
            state.assigned.append(e.mode_id)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def peak_hours(histogram: np.ndarray) -> List[int]:
    """Hours whose count is within 80% of the busiest hour."""
    top = histogram.max() if histogram.size else 0
    if top == 0:
        return []
    return [int(h) for h in np.flatnonzero(histogram >= top * PEAK_HOUR_RATIO)]


def mode_statistics(
    entries: Iterable[HistoryEntry],
    mode_id: Optional[str] = None,
    since: Optional[float] = None,
    until: Optional[float] = None,
) -> Dict[str, ModeStatistics]:
    """Usage statistics per mode over *entries*, optionally for one mode and a time range."""
    grouped: Dict[str, List[HistoryEntry]] = {}
    for e in entries:
        if mode_id and e.mode_id != mode_id:
            continue
        if since is not None and e.timestamp < since:
            continue
        if until is not None and e.timestamp > until:
            continue
        grouped.setdefault(e.mode_id, []).append(e)

    out: Dict[str, ModeStatistics] = {}
    for mid, group in grouped.items():
        stamps = [_utc(e.timestamp) for e in group]
        durations = np.array([e.duration for e in group if e.duration is not None], dtype=float)
        confidences = np.array([e.confidence for e in group if e.confidence is not None], dtype=float)
        out[mid] = ModeStatistics(
            mode_id=mid,
            total_usage=len(group),
            unique_users=len({e.user_id for e in group}),
            unique_sessions=len({e.session_id for e in group}),
            average_duration=round(float(durations.mean()), 3) if durations.size else 0.0,
            average_confidence=round(float(confidences.mean()), 4) if confidences.size else 0.0,
            usage_by_hour=np.bincount([t.hour for t in stamps], minlength=24).tolist(),
            usage_by_weekday=np.bincount([t.weekday() for t in stamps], minlength=7).tolist(),
        )
    return out


def _learning_progress(state: _UserState) -> float:
    if state.confidence_n < 2:
        return 0.0
    delta = float(np.mean(list(state.recent)) - np.mean(state.early))
    return round(max(0.0, min(100.0, 100.0 * delta)), 2)


def _utc(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)
