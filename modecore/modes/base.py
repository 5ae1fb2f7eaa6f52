"""
Mode contract — the interface every cognitive mode implements, plus the
plain matching helpers the concrete modes share.

A mode is any object exposing a ``config`` and the four lifecycle hooks below.
Modes are independent variants: there is no common base class, the registry
dispatches purely through this protocol.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable


@dataclass(frozen=True)
class ModeConfig:
    id: str
    name: str
    category: str
    keywords: Tuple[str, ...]            # matched against the token list
    triggers: Tuple[str, ...]            # regex sources matched against raw text
    priority: int = 5                    # 1 (lowest) → 10 (highest)
    timeout_ms: int = 30_000
    min_input_length: int = 0
    max_input_length: int = 10_000
    required_context: Tuple[str, ...] = ()
    max_concurrent_sessions: int = 10
    description: str = ""


@dataclass
class ModeContext:
    session_id: str
    user_id: str
    input: str = ""
    timestamp: float = field(default_factory=time.time)
    previous_mode: Optional[str] = None
    confidence: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ModeResult:
    success: bool
    output: str = ""
    confidence: float = 0.0
    suggested_next_mode: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    duration_ms: Optional[float] = None

    @classmethod
    def failed(cls, message: str, **metadata: Any) -> "ModeResult":
        return cls(success=False, output=message, confidence=0.0, metadata=metadata)


@dataclass
class CanHandleResult:
    confidence: float
    reasoning: List[str] = field(default_factory=list)


@runtime_checkable
class Mode(Protocol):
    config: ModeConfig

    async def on_activate(self, context: ModeContext) -> None: ...

    async def on_process(self, input: str, context: ModeContext) -> ModeResult: ...

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult: ...

    async def on_deactivate(self, session_id: str) -> None: ...


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(value, high))


def phrase_matches(text: str, phrases: Sequence[str]) -> List[str]:
    """Return the phrases that occur (case-insensitively) in *text*."""
    lowered = text.lower()
    return [p for p in phrases if p.lower() in lowered]


def pattern_matches(text: str, patterns: Sequence[str]) -> int:
    return sum(1 for p in patterns if re.search(p, text, re.IGNORECASE))


def input_violation(config: ModeConfig, input: str, context: ModeContext) -> Optional[str]:
    """Describe why *input* is outside the mode's declared bounds, or None."""
    length = len(input.strip())
    if length < config.min_input_length:
        return f"input shorter than {config.min_input_length} characters"
    if length > config.max_input_length:
        return f"input longer than {config.max_input_length} characters"
    missing = [k for k in config.required_context if k not in context.metadata]
    if missing:
        return f"missing required context: {', '.join(missing)}"
    return None


def assess(
    config: ModeConfig,
    input: str,
    context: ModeContext,
    signals: Sequence[Tuple[float, str]] = (),
) -> CanHandleResult:
    """
    Self-assessment shared by all modes: keyword and trigger hits, the mode's
    own weighted *signals*, and a small priority bonus, clamped to [0, 1].
    """
    violation = input_violation(config, input, context)
    if violation:
        return CanHandleResult(confidence=0.0, reasoning=[f"Cannot handle: {violation}"])

    reasoning: List[str] = []
    confidence = 0.0

    keyword_hits = phrase_matches(input, config.keywords)
    if keyword_hits:
        confidence += min(0.4, len(keyword_hits) * 0.1)
        reasoning.append(f"Keywords matched: {', '.join(keyword_hits)}")

    trigger_hits = pattern_matches(input, config.triggers)
    if trigger_hits:
        confidence += min(0.3, trigger_hits * 0.1)
        reasoning.append(f"Triggers matched: {trigger_hits}")

    for weight, reason in signals:
        confidence += weight
        reasoning.append(reason)

    confidence += config.priority * 0.02
    reasoning.append(f"Priority bonus: {config.priority}")

    return CanHandleResult(confidence=round(clamp(confidence), 4), reasoning=reasoning)


class SessionClock:
    """Tracks when each session entered a mode; shared by the concrete modes."""

    def __init__(self):
        self._started: Dict[str, float] = {}

    def start(self, context: ModeContext) -> None:
        self._started[context.session_id] = context.timestamp

    def stop(self, session_id: str) -> Optional[float]:
        started = self._started.pop(session_id, None)
        if started is None:
            return None
        return time.time() - started

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._started
