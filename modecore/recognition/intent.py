"""
Intent Analyzer — scores raw input against every registered mode's keywords
and trigger patterns.

Score per mode = 2 × trigger hits + 1 × keyword hits. The highest score wins;
on equal scores the mode registered first wins, so results never depend on the
content of the input beyond the hit counts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from ..modes.base import clamp
from ..modes.registry import ModeRegistry
from .weights import (
    INTENT_BASE_CONFIDENCE,
    KEYWORD_CONFIDENCE,
    KEYWORD_SCORE,
    MIN_TOKEN_LENGTH,
    PATTERN_CONFIDENCE,
    PATTERN_SCORE,
    STOP_WORDS,
)

_NON_WORD = re.compile(r"[^\w\s]")


def tokenize(text: str) -> List[str]:
    """Lowercase, strip punctuation, drop short tokens and stop words."""
    cleaned = _NON_WORD.sub(" ", text.lower())
    return [t for t in cleaned.split() if len(t) >= MIN_TOKEN_LENGTH and t not in STOP_WORDS]


@dataclass
class IntentResult:
    mode: str
    confidence: float
    category: str
    matched: bool                   # False when no mode scored at all
    pattern_hits: int = 0
    keyword_hits: int = 0
    tokens: List[str] = field(default_factory=list)
    scores: Dict[str, int] = field(default_factory=dict)


class IntentAnalyzer:

    def __init__(self, registry: ModeRegistry, default_mode: str = "thinking"):
        registry.get(default_mode)
        self._registry = registry
        self._default = default_mode
        # keywords normalized the same way as input, so "stack trace" is
        # matched as the phrase ["stack", "trace"]
        self._keywords: Dict[str, List[Tuple[str, ...]]] = {
            mode.config.id: [kw for kw in (tuple(tokenize(k)) for k in mode.config.keywords) if kw]
            for mode in registry
        }

    def analyze(self, text: str) -> IntentResult:
        tokens = tokenize(text)
        stream = f" {' '.join(tokens)} "
        token_set = set(tokens)

        best_id = self._default
        best_score = 0
        best_hits = (0, 0)
        scores: Dict[str, int] = {}

        for mode_id, keywords in self._keywords.items():
            pattern_hits = sum(1 for p in self._registry.patterns(mode_id) if p.search(text))
            keyword_hits = sum(
                1 for kw in keywords
                if (kw[0] in token_set if len(kw) == 1 else f" {' '.join(kw)} " in stream)
            )
            score = PATTERN_SCORE * pattern_hits + KEYWORD_SCORE * keyword_hits
            scores[mode_id] = score
            if score > best_score:
                best_id, best_score = mode_id, score
                best_hits = (pattern_hits, keyword_hits)

        pattern_hits, keyword_hits = best_hits
        confidence = (
            INTENT_BASE_CONFIDENCE
            + PATTERN_CONFIDENCE * pattern_hits
            + KEYWORD_CONFIDENCE * (keyword_hits / max(len(tokens), 1))
        )
        return IntentResult(
            mode=best_id,
            confidence=round(clamp(confidence), 4),
            category=self._registry.category_of(best_id),
            matched=best_score > 0,
            pattern_hits=pattern_hits,
            keyword_hits=keyword_hits,
            tokens=tokens,
            scores=scores,
        )
