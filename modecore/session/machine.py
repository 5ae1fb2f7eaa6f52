"""
Mode Session state machine.

One ModeSession per live session, each guarded by its own asyncio.Lock, so
work on one session never observes or changes another's current mode.

    idle ──first input──▶ active(A) ──B≠A──▶ transitioning ──▶ active(B)
                              │  ▲                 │ activation of B fails
                              │  └─────────────────┘ (A re-activated; idle if A is full)
                              ├──same mode──▶ active(A)  (still logged)
                              └──close / idle timeout──▶ idle (discarded)
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from ..errors import (
    CapacityExceededError,
    InvalidModeReferenceError,
    ModeEngineError,
    ProcessingFailureError,
    ProcessingTimeoutError,
    SessionNotFoundError,
)
from ..modes.base import ModeContext, ModeResult
from ..modes.registry import ModeRegistry
from ..recognition.context import SessionTelemetry
from ..recognition.recognizer import RecognitionResult, Recognizer
from .events import EventChannel, TransitionAction, TransitionEvent

logger = logging.getLogger(__name__)

# error kind reported in a failed ModeResult's metadata
_ERROR_KINDS = {
    ProcessingTimeoutError: "processing_timeout",
    ProcessingFailureError: "processing_failure",
    CapacityExceededError: "capacity_exceeded",
    InvalidModeReferenceError: "invalid_mode_reference",
}


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    TRANSITIONING = "transitioning"


@dataclass
class ModeSession:
    session_id: str
    user_id: str
    state: SessionState = SessionState.IDLE
    current_mode: Optional[str] = None
    activated_at: Optional[float] = None
    transition_count: int = 0
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    last_event_at: float = 0.0
    last_confidence: float = 0.0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["state"] = self.state.value
        return d


@dataclass
class InteractionOutcome:
    session_id: str
    recognition: RecognitionResult
    result: ModeResult
    current_mode: Optional[str]
    previous_mode: Optional[str]

    @property
    def switched(self) -> bool:
        return self.current_mode != self.previous_mode


class _SessionLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class SessionManager:

    def __init__(
        self,
        registry: ModeRegistry,
        recognizer: Recognizer,
        channel: EventChannel,
        idle_timeout_s: float = 1800,
        clock: Callable[[], float] = time.time,
    ):
        self._registry = registry
        self._recognizer = recognizer
        self._channel = channel
        self._clock = clock
        self.idle_timeout_s = idle_timeout_s
        self._sessions: Dict[str, ModeSession] = {}
        self._locks: Dict[str, _SessionLock] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> ModeSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def current_mode(self, session_id: str) -> Optional[str]:
        return self.get(session_id).current_mode

    def sessions(self) -> List[ModeSession]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def handle_input(self, input: str, telemetry: SessionTelemetry) -> InteractionOutcome:
        """Recognize *input*, move the session to the recommended mode, process it there."""
        sid = telemetry.session_id
        async with self._guard(sid):
            session = self._session(sid, telemetry.user_id)
            previous = session.current_mode
            recognition = self._recognizer.recognize(input, self._enrich(telemetry, session))

            try:
                await self._switch(
                    session,
                    recognition.recommended_mode,
                    confidence=recognition.confidence,
                    reason=recognition.reasoning,
                    input=input,
                )
            except ModeEngineError as exc:
                logger.warning("Session %s stays in %s: %s", sid, previous, exc)
                result = _failed(exc)
            else:
                result = await self._process(session, input, recognition.confidence, telemetry.metadata)

            return InteractionOutcome(
                session_id=sid,
                recognition=recognition,
                result=result,
                current_mode=session.current_mode,
                previous_mode=previous,
            )

    async def transition(
        self,
        session_id: str,
        mode_id: str,
        user_id: str = "anonymous",
        reason: str = "manual",
        confidence: float = 1.0,
    ) -> ModeSession:
        """Switch a session to *mode_id* directly, creating the session if needed."""
        self._registry.get(mode_id)
        async with self._guard(session_id):
            session = self._session(session_id, user_id)
            await self._switch(session, mode_id, confidence=confidence, reason=reason)
            return session

    async def process(
        self,
        session_id: str,
        input: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ModeResult:
        """Run *input* through the session's current mode without re-recognizing."""
        async with self._guard(session_id):
            session = self.get(session_id)
            if session.current_mode is None:
                return ModeResult.failed("Session has no active mode", error="no_active_mode")
            return await self._process(session, input, session.last_confidence, metadata or {})

    async def close(self, session_id: str, reason: str = "closed") -> ModeSession:
        """
        Deactivate the session's mode, record the final entry and discard the
        session. The deactivate event has been handled by every subscriber
        when this returns.
        """
        async with self._guard(session_id):
            session = self.get(session_id)
            if session.current_mode is not None:
                mode_id = session.current_mode
                now = self._stamp(session)
                await self._registry.deactivate(mode_id, session_id)
                await self._emit(
                    session, TransitionAction.DEACTIVATE, mode_id,
                    timestamp=now,
                    duration=now - (session.activated_at or now),
                    reason=reason,
                )
            session.state = SessionState.IDLE
            session.current_mode = None
            session.activated_at = None
            del self._sessions[session_id]
        await self._channel.flush()
        logger.info("Session %s closed (%s)", session_id, reason)
        return session

    async def expire_idle(self, now: Optional[float] = None) -> List[str]:
        """Close every session inactive for longer than the idle timeout."""
        now = self._clock() if now is None else now
        cutoff = now - self.idle_timeout_s
        expired = [s.session_id for s in self.sessions() if s.last_activity <= cutoff]
        for sid in expired:
            try:
                await self.close(sid, reason="inactivity_timeout")
            except SessionNotFoundError:
                # closed by a request while the sweep was running
                continue
        return expired

    async def close_all(self, reason: str = "shutdown") -> None:
        for sid in [s.session_id for s in self.sessions()]:
            try:
                await self.close(sid, reason=reason)
            except SessionNotFoundError:
                continue

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _guard(self, session_id: str) -> AsyncIterator[None]:
        """
        Hold the session's lock. The lock lives as long as someone holds or
        waits for it, so every caller for one session id queues on the same
        lock, and ids that never become sessions leave nothing behind.
        """
        slot = self._locks.get(session_id)
        if slot is None:
            slot = self._locks[session_id] = _SessionLock()
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if not slot.users:
                del self._locks[session_id]

    def _session(self, session_id: str, user_id: str) -> ModeSession:
        session = self._sessions.get(session_id)
        if session is None:
            now = self._clock()
            session = ModeSession(session_id=session_id, user_id=user_id, created_at=now, last_activity=now)
            self._sessions[session_id] = session
            logger.debug("Session %s created for user %s", session_id, user_id)
        return session

    def _enrich(self, telemetry: SessionTelemetry, session: ModeSession) -> SessionTelemetry:
        # the session, not the caller, knows which mode is active
        changes: Dict[str, Any] = {}
        if session.current_mode is not None:
            changes["current_mode"] = session.current_mode
        if not telemetry.session_duration_s:
            changes["session_duration_s"] = max(0.0, self._clock() - session.created_at)
        return replace(telemetry, **changes) if changes else telemetry

    def _stamp(self, session: ModeSession) -> float:
        # timestamps never run backwards within a session
        now = max(self._clock(), session.last_event_at)
        session.last_event_at = now
        session.last_activity = now
        return now

    def _context(self, session: ModeSession, input: str, confidence: float,
                 metadata: Optional[Dict[str, Any]] = None) -> ModeContext:
        return ModeContext(
            session_id=session.session_id,
            user_id=session.user_id,
            input=input,
            timestamp=self._clock(),
            previous_mode=session.current_mode,
            confidence=confidence,
            metadata=dict(metadata or {}),
        )

    async def _switch(
        self,
        session: ModeSession,
        mode_id: str,
        confidence: float,
        reason: str,
        input: str = "",
    ) -> None:
        self._registry.get(mode_id)
        sid = session.session_id
        previous = session.current_mode

        if previous is None:
            await self._registry.activate(mode_id, self._context(session, input, confidence))
            now = self._stamp(session)
            session.state = SessionState.ACTIVE
            session.current_mode = mode_id
            session.activated_at = now
            session.last_confidence = confidence
            await self._emit(session, TransitionAction.ACTIVATE, mode_id,
                             timestamp=now, confidence=confidence, reason=reason)
            return

        if previous == mode_id:
            now = self._stamp(session)
            session.transition_count += 1
            session.last_confidence = confidence
            await self._emit(session, TransitionAction.TRANSITION, mode_id, from_mode=previous,
                             timestamp=now, confidence=confidence, reason=reason)
            return

        if not self._registry.has_capacity(mode_id):
            cfg = self._registry.get(mode_id).config
            raise CapacityExceededError(mode_id, cfg.max_concurrent_sessions)

        session.state = SessionState.TRANSITIONING
        await self._registry.deactivate(previous, sid)
        try:
            await self._registry.activate(mode_id, self._context(session, input, confidence))
        except ModeEngineError:
            await self._restore(session, previous)
            raise

        now = self._stamp(session)
        duration = now - (session.activated_at or now)
        session.state = SessionState.ACTIVE
        session.current_mode = mode_id
        session.activated_at = now
        session.transition_count += 1
        session.last_confidence = confidence
        await self._emit(session, TransitionAction.TRANSITION, mode_id, from_mode=previous,
                         timestamp=now, duration=duration, confidence=confidence, reason=reason)
        logger.debug("Session %s: %s -> %s", sid, previous, mode_id)

    async def _restore(self, session: ModeSession, mode_id: str) -> None:
        try:
            await self._registry.activate(mode_id, self._context(session, "", session.last_confidence))
        except ModeEngineError:
            # the registry no longer counts the session in mode_id; the session follows it to idle
            logger.exception("Session %s could not re-enter %s", session.session_id, mode_id)
            now = self._stamp(session)
            await self._emit(
                session, TransitionAction.DEACTIVATE, mode_id,
                timestamp=now,
                duration=now - (session.activated_at or now),
                reason="reactivation_failed",
            )
            session.state = SessionState.IDLE
            session.current_mode = None
            session.activated_at = None
            return
        session.state = SessionState.ACTIVE

    async def _process(
        self,
        session: ModeSession,
        input: str,
        confidence: float,
        metadata: Dict[str, Any],
    ) -> ModeResult:
        mode_id = session.current_mode
        context = self._context(session, input, confidence, metadata)
        try:
            result = await self._registry.process(mode_id, input, context)
        except ModeEngineError as exc:
            result = _failed(exc)
        session.last_activity = max(self._clock(), session.last_event_at)
        result.metadata.setdefault("mode", mode_id)
        return result

    async def _emit(
        self,
        session: ModeSession,
        action: TransitionAction,
        mode_id: str,
        timestamp: float,
        from_mode: Optional[str] = None,
        duration: Optional[float] = None,
        confidence: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> None:
        await self._channel.publish(TransitionEvent(
            session_id=session.session_id,
            user_id=session.user_id,
            action=action,
            mode_id=mode_id,
            category=self._registry.category_of(mode_id),
            timestamp=timestamp,
            from_mode=from_mode,
            duration=round(duration, 3) if duration is not None else None,
            confidence=confidence,
            reason=reason,
        ))


def _failed(exc: ModeEngineError) -> ModeResult:
    kind = _ERROR_KINDS.get(type(exc), "mode_error")
    return ModeResult.failed(str(exc), error=kind, mode=getattr(exc, "mode_id", None))
