"""
Recognizer — the recognize() entry point.

Runs the intent and context analyzers, hands both to the selector, and never
lets an analyzer failure reach the caller: any exception degrades to the
default mode at minimal confidence.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ..modes.registry import ModeRegistry
from .context import ContextAnalyzer, SessionTelemetry
from .intent import IntentAnalyzer
from .selector import ModeSelector
from .weights import DEGRADED_CONFIDENCE

logger = logging.getLogger(__name__)


@dataclass
class RecognitionResult:
    recommended_mode: str
    confidence: float
    reasoning: str
    alternative_modes: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


class Recognizer:

    def __init__(
        self,
        registry: ModeRegistry,
        context_analyzer: Optional[ContextAnalyzer] = None,
        default_mode: str = "thinking",
    ):
        self._registry = registry
        self._default = default_mode
        self.intent = IntentAnalyzer(registry, default_mode)
        self.context = context_analyzer or ContextAnalyzer()
        self.selector = ModeSelector(registry, default_mode)

    def recognize(self, text: str, telemetry: Optional[SessionTelemetry] = None) -> RecognitionResult:
        telemetry = telemetry or SessionTelemetry()
        try:
            intent = self.intent.analyze(text)
            context = self.context.analyze(telemetry)
            selection = self.selector.select(intent, context)
        except Exception as exc:
            logger.exception("Recognition degraded for session %s", telemetry.session_id)
            return self._degraded(exc)

        return RecognitionResult(
            recommended_mode=selection.mode,
            confidence=selection.confidence,
            reasoning=selection.reasoning,
            alternative_modes=selection.alternatives,
            metadata={
                "intent": intent.mode,
                "intent_confidence": intent.confidence,
                "intent_matched": intent.matched,
                "category": self._registry.category_of(selection.mode),
                "tokens": intent.tokens,
                "situational_factors": context.factors,
                "preferred_modes": context.preferred_modes,
                "project": context.project,
                "scores": {k: v for k, v in selection.scores.items() if v > 0},
                "degraded": False,
            },
        )

    def _degraded(self, exc: Exception) -> RecognitionResult:
        return RecognitionResult(
            recommended_mode=self._default,
            confidence=DEGRADED_CONFIDENCE,
            reasoning=f"Degraded recognition: {type(exc).__name__}: {exc} | Recommended: {self._default}",
            metadata={
                "category": self._registry.category_of(self._default),
                "degraded": True,
                "error": str(exc),
            },
        )
