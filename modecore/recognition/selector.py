"""
Mode Selector — combines the intent and the session context into one
recommended mode using the fixed policy in weights.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from ..modes.base import clamp
from ..modes.registry import ModeRegistry
from .context import ContextResult
from .intent import IntentResult
from .weights import (
    CONFIDENCE_BASE,
    CONFIDENCE_INTENT_SHARE,
    CONFIDENCE_WITH_FACTORS,
    CONFIDENCE_WITHOUT_FACTORS,
    CONTINUITY_WEIGHT,
    FACTOR_RULES,
    INTENT_WEIGHT,
    MAX_ALTERNATIVES,
    PREFERENCE_WEIGHT,
)


@dataclass
class Selection:
    mode: str
    confidence: float
    reasoning: str
    alternatives: List[str] = field(default_factory=list)
    scores: Dict[str, float] = field(default_factory=dict)


class ModeSelector:
    """
    Scores every registered mode and returns the argmax. Equal scores go to
    the mode registered first; when nothing scores the default mode is used.
    """

    def __init__(self, registry: ModeRegistry, default_mode: str = "thinking"):
        registry.get(default_mode)
        for rule in FACTOR_RULES:
            registry.get(rule.mode_id)
        self._registry = registry
        self._default = default_mode

    def evaluate(self, intent: IntentResult, context: ContextResult) -> Dict[str, float]:
        """Combined score for every mode, in registration order."""
        scores: Dict[str, float] = {mid: 0.0 for mid in self._registry.ids()}

        if intent.matched:
            scores[intent.mode] += intent.confidence * INTENT_WEIGHT
        for rule in FACTOR_RULES:
            if rule.factor in context.factors:
                scores[rule.mode_id] += rule.weight
        for mode_id in context.preferred_modes:
            if mode_id in scores:
                scores[mode_id] += PREFERENCE_WEIGHT
        if context.current_mode in scores:
            scores[context.current_mode] += CONTINUITY_WEIGHT

        return {mid: round(s, 6) for mid, s in scores.items()}

    def select(self, intent: IntentResult, context: ContextResult) -> Selection:
        scores = self.evaluate(intent, context)

        chosen = self._default
        best = 0.0
        for mode_id, score in scores.items():
            if score > best:
                chosen, best = mode_id, score

        factor_share = CONFIDENCE_WITH_FACTORS if context.factors else CONFIDENCE_WITHOUT_FACTORS
        confidence = intent.confidence * CONFIDENCE_INTENT_SHARE + factor_share + CONFIDENCE_BASE

        return Selection(
            mode=chosen,
            confidence=round(clamp(confidence), 4),
            reasoning=" | ".join(self.describe(intent, context, chosen)),
            alternatives=self._alternatives(chosen, scores, intent, context),
            scores=scores,
        )

    def describe(self, intent: IntentResult, context: ContextResult, chosen: str) -> List[str]:
        """Human-readable contributions, in the order they were applied."""
        parts: List[str] = []
        if intent.matched:
            parts.append(f"Intent: {intent.mode} ({intent.confidence:.0%} confidence)")
        else:
            parts.append("Intent: no keyword or pattern match")
        if context.factors:
            parts.append(f"Context: {', '.join(context.factors)}")
        if context.preferred_modes:
            parts.append(f"Preferred: {', '.join(context.preferred_modes)}")
        if context.current_mode:
            parts.append(f"Continuity: {context.current_mode}")
        parts.append(f"Recommended: {chosen}")
        return parts

    def _alternatives(
        self,
        chosen: str,
        scores: Dict[str, float],
        intent: IntentResult,
        context: ContextResult,
    ) -> List[str]:
        ranked = sorted(
            (mid for mid, s in scores.items() if s > 0),
            key=lambda mid: -scores[mid],
        )
        candidates: List[str] = list(ranked)
        candidates += self._registry.by_category().get(intent.category, [])
        if "recent_errors" in context.factors:
            candidates.append("debugging")

        out: List[str] = []
        for mid in candidates:
            if mid != chosen and mid not in out:
                out.append(mid)
            if len(out) == MAX_ALTERNATIVES:
                break
        return out
