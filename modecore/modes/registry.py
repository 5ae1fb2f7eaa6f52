"""
Mode Registry — the ordered, load-once collection of modes.

The registry owns everything that crosses the mode boundary: per-mode session
counts (capacity), processing timeouts, failure wrapping and usage metrics.
Mode implementations stay ignorant of all of it.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from ..errors import (
    CapacityExceededError,
    InvalidModeReferenceError,
    ProcessingFailureError,
    ProcessingTimeoutError,
    RegistryConfigError,
)
from .base import CanHandleResult, Mode, ModeContext, ModeResult, clamp, input_violation

logger = logging.getLogger(__name__)

_EMA_ALPHA = 0.1


@dataclass
class ModeMetrics:
    activations: int = 0
    processed: int = 0
    errors: int = 0
    total_duration_ms: float = 0.0
    success_rate: float = 1.0
    average_confidence: float = 0.0
    last_used: Optional[float] = None

    @property
    def average_duration_ms(self) -> float:
        return self.total_duration_ms / self.processed if self.processed else 0.0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["average_duration_ms"] = round(self.average_duration_ms, 3)
        return d


class ModeRegistry:
    """
    Holds modes in registration order. Validation runs once in the
    constructor: duplicate ids or trigger patterns that do not compile are
    fatal before any session can start.
    """

    def __init__(self, modes: Iterable[Mode]):
        self._modes: Dict[str, Mode] = {}
        self._patterns: Dict[str, Tuple[re.Pattern, ...]] = {}
        for mode in modes:
            cfg = mode.config
            if cfg.id in self._modes:
                raise RegistryConfigError(f"Duplicate mode id '{cfg.id}'")
            if cfg.min_input_length > cfg.max_input_length:
                raise RegistryConfigError(f"Mode '{cfg.id}' has min_input_length > max_input_length")
            compiled = []
            for source in cfg.triggers:
                try:
                    compiled.append(re.compile(source, re.IGNORECASE))
                except re.error as exc:
                    raise RegistryConfigError(
                        f"Mode '{cfg.id}' has malformed trigger {source!r}: {exc}"
                    ) from exc
            self._modes[cfg.id] = mode
            self._patterns[cfg.id] = tuple(compiled)

        if not self._modes:
            raise RegistryConfigError("Mode registry is empty")

        self._sessions: Dict[str, Set[str]] = {mid: set() for mid in self._modes}
        self._metrics: Dict[str, ModeMetrics] = {mid: ModeMetrics() for mid in self._modes}
        logger.info("Mode registry loaded with %d modes", len(self._modes))

    # ── Lookup ───────────────────────────────────────────────────────────────

    def get(self, mode_id: str) -> Mode:
        try:
            return self._modes[mode_id]
        except KeyError:
            raise InvalidModeReferenceError(mode_id) from None

    def __contains__(self, mode_id: str) -> bool:
        return mode_id in self._modes

    def __iter__(self) -> Iterator[Mode]:
        return iter(self._modes.values())

    def __len__(self) -> int:
        return len(self._modes)

    def ids(self) -> List[str]:
        return list(self._modes)

    def by_category(self) -> Dict[str, List[str]]:
        out: Dict[str, List[str]] = {}
        for mode in self._modes.values():
            out.setdefault(mode.config.category, []).append(mode.config.id)
        return out

    def category_of(self, mode_id: str) -> str:
        return self.get(mode_id).config.category

    def patterns(self, mode_id: str) -> Tuple[re.Pattern, ...]:
        self.get(mode_id)
        return self._patterns[mode_id]

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def has_capacity(self, mode_id: str) -> bool:
        mode = self.get(mode_id)
        return len(self._sessions[mode_id]) < mode.config.max_concurrent_sessions

    def active_sessions(self, mode_id: str) -> int:
        self.get(mode_id)
        return len(self._sessions[mode_id])

    async def activate(self, mode_id: str, context: ModeContext) -> None:
        mode = self.get(mode_id)
        sessions = self._sessions[mode_id]
        if context.session_id not in sessions and not self.has_capacity(mode_id):
            raise CapacityExceededError(mode_id, mode.config.max_concurrent_sessions)
        try:
            await mode.on_activate(context)
        except Exception as exc:
            self._metrics[mode_id].errors += 1
            logger.exception("Mode '%s' failed to activate for session %s", mode_id, context.session_id)
            raise ProcessingFailureError(mode_id, str(exc)) from exc
        sessions.add(context.session_id)
        metrics = self._metrics[mode_id]
        metrics.activations += 1
        metrics.last_used = time.time()

    async def deactivate(self, mode_id: str, session_id: str) -> None:
        mode = self.get(mode_id)
        self._sessions[mode_id].discard(session_id)
        try:
            await mode.on_deactivate(session_id)
        except Exception:
            # the session has already left the mode; a failing hook cannot undo that
            self._metrics[mode_id].errors += 1
            logger.exception("Mode '%s' failed to deactivate session %s", mode_id, session_id)

    async def process(self, mode_id: str, input: str, context: ModeContext) -> ModeResult:
        mode = self.get(mode_id)
        cfg = mode.config
        violation = input_violation(cfg, input, context)
        if violation:
            raise ProcessingFailureError(mode_id, violation)

        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                mode.on_process(input, context), timeout=cfg.timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            self._record(mode_id, success=False, confidence=0.0, started=started)
            raise ProcessingTimeoutError(mode_id, cfg.timeout_ms) from None
        except Exception as exc:
            self._record(mode_id, success=False, confidence=0.0, started=started)
            logger.exception("Mode '%s' raised while processing", mode_id)
            raise ProcessingFailureError(mode_id, str(exc)) from exc

        result.confidence = clamp(result.confidence)
        result.duration_ms = round((time.perf_counter() - started) * 1000, 3)
        self._record(mode_id, success=result.success, confidence=result.confidence, started=started)
        return result

    def can_handle(self, mode_id: str, input: str, context: ModeContext) -> CanHandleResult:
        result = self.get(mode_id).on_can_handle(input, context)
        result.confidence = clamp(result.confidence)
        return result

    def rank(self, input: str, context: ModeContext) -> List[Tuple[str, CanHandleResult]]:
        """All modes by self-assessed confidence, registration order breaking ties."""
        scored = [(mid, self.can_handle(mid, input, context)) for mid in self._modes]
        return sorted(scored, key=lambda pair: -pair[1].confidence)

    # ── Metrics ──────────────────────────────────────────────────────────────

    def _record(self, mode_id: str, success: bool, confidence: float, started: float) -> None:
        m = self._metrics[mode_id]
        m.processed += 1
        m.total_duration_ms += (time.perf_counter() - started) * 1000
        if not success:
            m.errors += 1
        m.success_rate = (1 - _EMA_ALPHA) * m.success_rate + _EMA_ALPHA * (1.0 if success else 0.0)
        m.average_confidence = (1 - _EMA_ALPHA) * m.average_confidence + _EMA_ALPHA * confidence
        m.last_used = time.time()

    def metrics(self, mode_id: str) -> ModeMetrics:
        self.get(mode_id)
        return self._metrics[mode_id]

    def status(self) -> dict:
        return {
            "total_modes": len(self._modes),
            "categories": self.by_category(),
            "active_sessions": {mid: len(s) for mid, s in self._sessions.items() if s},
            "metrics": {mid: m.to_dict() for mid, m in self._metrics.items()},
        }
