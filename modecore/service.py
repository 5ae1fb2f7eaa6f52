"""
ModeEngine — one explicit instance per process wiring the registry,
recognition, session state machine, event channel, history and analytics.

Usage:
    engine = ModeEngine(config)
    await engine.start()
    outcome = await engine.handle("fix this bug", SessionTelemetry(session_id="s1"))
    await engine.shutdown()

or as ``async with ModeEngine(config) as engine: ...``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .config import Config
from .display import ModeIndicator
from .errors import InvalidModeReferenceError, UnsupportedFormatError
from .history.analytics import (
    AnalyticsAggregator,
    ModeStatistics,
    SessionSummary,
    UserAnalytics,
    mode_statistics,
)
from .history.recorder import FORMATS, HistoryEntry, HistoryQuery, HistoryRecorder
from .history.sink import PersistenceSink, SQLiteHistorySink
from .modes.base import CanHandleResult, Mode, ModeContext, ModeResult
from .modes.catalog import default_modes
from .modes.registry import ModeRegistry
from .recognition.context import ContextAnalyzer, SessionTelemetry
from .recognition.recognizer import RecognitionResult, Recognizer
from .session.events import EventChannel
from .session.machine import InteractionOutcome, ModeSession, SessionManager
from .settings import get_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Background loops
# ---------------------------------------------------------------------------

async def _periodic(name: str, interval_s: float, job: Callable[[], Awaitable[Any]]) -> None:
    while True:
        await asyncio.sleep(interval_s)
        try:
            await job()
        except Exception:
            logger.exception("Periodic task '%s' failed", name)


class ModeEngine:

    def __init__(
        self,
        cfg: Config,
        modes: Optional[List[Mode]] = None,
        sink: Optional[PersistenceSink] = None,
    ):
        self.config = cfg
        self.registry = ModeRegistry(modes if modes is not None else default_modes())
        if cfg.default_mode not in self.registry:
            raise InvalidModeReferenceError(cfg.default_mode)

        if sink is None and cfg.persist_history:
            sink = SQLiteHistorySink(cfg.history_db_path)
        self.history = HistoryRecorder(
            max_entries=cfg.history_max_entries,
            retention_days=cfg.retention_days,
            sink=sink,
        )
        self.analytics = AnalyticsAggregator()
        self.history.add_listener(self.analytics.ingest)

        self.recognizer = Recognizer(
            self.registry,
            ContextAnalyzer(self._preferred_modes),
            default_mode=cfg.default_mode,
        )
        self.indicator = ModeIndicator()
        self.channel = EventChannel()
        self.channel.subscribe("history", self.history.record_event)
        self.channel.subscribe("display", self.indicator.on_event)

        self.sessions = SessionManager(
            self.registry,
            self.recognizer,
            self.channel,
            idle_timeout_s=cfg.session_idle_timeout_s,
        )
        self._tasks: List[asyncio.Task] = []
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._started:
            return
        if self.history.sink is not None:
            self.history.load_from_sink()
            self.analytics.rebuild(self.history.entries())
        await self.channel.start()
        cfg = self.config
        self._tasks = [
            asyncio.create_task(_periodic("cleanup", cfg.cleanup_interval_s, self._cleanup_job)),
            asyncio.create_task(
                _periodic("analytics", cfg.analytics_refresh_interval_s, self._refresh_job)
            ),
            asyncio.create_task(_periodic("idle-sweep", cfg.idle_sweep_interval_s, self._sweep_job)),
        ]
        self._started = True
        logger.info("Mode engine started with %d modes", len(self.registry))

    async def shutdown(self) -> None:
        if not self._started:
            return
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self.sessions.close_all()
        await self.channel.stop()
        self.history.flush_to_sink()
        self._started = False
        logger.info("Mode engine stopped")

    async def __aenter__(self) -> "ModeEngine":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Recognition and sessions
    # ------------------------------------------------------------------

    def recognize(self, input: str, telemetry: Optional[SessionTelemetry] = None) -> RecognitionResult:
        return self.recognizer.recognize(input, telemetry)

    async def handle(self, input: str, telemetry: SessionTelemetry) -> InteractionOutcome:
        outcome = await self.sessions.handle_input(input, telemetry)
        # callers read their own history right after an interaction
        await self.channel.flush()
        return outcome

    async def transition(self, session_id: str, mode_id: str, user_id: str = "anonymous",
                         reason: str = "manual") -> ModeSession:
        session = await self.sessions.transition(session_id, mode_id, user_id=user_id, reason=reason)
        await self.channel.flush()
        return session

    async def process(self, session_id: str, input: str,
                      metadata: Optional[Dict[str, Any]] = None) -> ModeResult:
        return await self.sessions.process(session_id, input, metadata)

    async def close_session(self, session_id: str, reason: str = "closed") -> ModeSession:
        return await self.sessions.close(session_id, reason)

    def can_handle(self, input: str, context: Optional[ModeContext] = None) -> List[Tuple[str, CanHandleResult]]:
        """Every mode's self-assessment of *input*, most confident first."""
        ctx = context or ModeContext(session_id="probe", user_id="anonymous", input=input)
        return self.registry.rank(input, ctx)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def query_history(self, **filters) -> List[HistoryEntry]:
        return self.history.query(HistoryQuery(**filters))

    def export_history(self, fmt: Optional[str] = None, **filters) -> str:
        fmt = fmt or get_settings()["export_format"]
        if fmt not in FORMATS:
            raise UnsupportedFormatError(fmt)
        entries = None
        if filters:
            query = HistoryQuery(**filters, limit=self.history.max_entries)
            entries = sorted(self.history.query(query), key=lambda e: e.timestamp)
        return self.history.export(fmt, entries)

    def import_history(self, data: str, fmt: str = "structured") -> int:
        added = self.history.import_entries(data, fmt)
        if added:
            self.analytics.rebuild(self.history.entries())
        return added

    def cleanup_history(self, now: Optional[float] = None) -> int:
        removed = self.history.cleanup(now)
        if removed:
            self.analytics.rebuild(self.history.entries())
        return removed

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def get_session_summary(self, session_id: str) -> Optional[SessionSummary]:
        return self.analytics.session_summary(session_id)

    def get_user_analytics(self, user_id: str) -> Optional[UserAnalytics]:
        return self.analytics.user_analytics(user_id)

    def get_user_sessions(self, user_id: str, limit: int = 20) -> List[SessionSummary]:
        return self.analytics.user_sessions(user_id, limit)

    def refresh_analytics(self) -> int:
        return self.analytics.rebuild(self.history.entries())

    def mode_statistics(self, mode_id: Optional[str] = None, since: Optional[float] = None,
                        until: Optional[float] = None) -> Dict[str, ModeStatistics]:
        if mode_id is not None:
            self.registry.get(mode_id)
        return mode_statistics(self.history.entries(), mode_id, since, until)

    def _preferred_modes(self, user_id: str) -> List[str]:
        s = get_settings()
        return self.analytics.preferred_modes(user_id, s["preference_window"], s["preference_top_n"])

    def preferred_modes(self, user_id: str) -> List[str]:
        return self._preferred_modes(user_id)

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    def status(self) -> dict:
        return {
            "started": self._started,
            "live_sessions": len(self.sessions),
            "history_entries": len(self.history),
            "evicted_entries": self.history.evicted_count,
            "analytics": self.analytics.status(),
            "events": self.channel.status(),
            "registry": self.registry.status(),
        }

    # ------------------------------------------------------------------
    # Periodic jobs (each safe to run early or twice)
    # ------------------------------------------------------------------

    async def _cleanup_job(self) -> None:
        self.cleanup_history()

    async def _refresh_job(self) -> None:
        self.refresh_analytics()
        self.history.flush_to_sink()

    async def _sweep_job(self) -> None:
        self.sessions.idle_timeout_s = get_settings()["session_idle_minutes"] * 60
        expired = await self.sessions.expire_idle()
        if expired:
            logger.info("Expired %d idle sessions", len(expired))
