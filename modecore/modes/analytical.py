"""
Analytical modes — researching, summarizing and analyzing text.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import List

from .base import (
    CanHandleResult,
    ModeConfig,
    ModeContext,
    ModeResult,
    SessionClock,
    assess,
    clamp,
)

_COMMON = frozenset({
    "the", "and", "but", "for", "with", "this", "that", "can", "you", "are", "was",
    "have", "has", "from", "into", "its", "our", "their", "they", "them", "then",
    "there", "what", "when", "which", "will", "would", "about", "also", "been",
})


class ResearchingMode:
    """Plans how to gather information on a subject."""

    config = ModeConfig(
        id="researching",
        name="Researching",
        category="analytical",
        keywords=(
            "research", "investigate", "search", "study", "gather", "discover",
            "documentation", "reference",
        ),
        triggers=(
            r"research|find|search|look up|investigate",
            r"documentation|reference|example|tutorial",
            r"how to|best practice|standard|guideline",
        ),
        priority=7,
        timeout_ms=120_000,
        max_concurrent_sessions=8,
        description="Knowledge and information gathering",
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        terms = key_terms(input, 3)
        questions = [f"What is the current state of {t}?" for t in terms]
        sources = ["Official documentation", "Issue trackers and changelogs"]
        if re.search(r"paper|study|academic|evidence", input, re.IGNORECASE):
            sources.append("Peer-reviewed literature")
        lines = ["Research questions:"] + [f"- {q}" for q in questions]
        lines += ["Sources:"] + [f"- {s}" for s in sources]
        return ModeResult(
            success=True,
            output="\n".join(lines),
            confidence=clamp(0.5 + 0.1 * len(terms)),
            suggested_next_mode="summarizing",
            metadata={"terms": terms, "sources": sources},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        return assess(self.config, input, context)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


class SummarizingMode:
    """Extractive summary: keeps the sentences richest in key terms."""

    config = ModeConfig(
        id="summarizing",
        name="Summarizing",
        category="analytical",
        keywords=("summary", "summarize", "brief", "overview", "digest", "synopsis", "tldr", "main points"),
        triggers=(
            r"summary|summarize|brief|overview|tldr",
            r"main points|key points|highlights",
            r"condense|shorten|abstract",
        ),
        priority=8,
        timeout_ms=90_000,
        min_input_length=20,
        max_concurrent_sessions=12,
        description="Condenses long text",
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        sentences = split_sentences(input)
        limit = int(context.metadata.get("summary_sentences", 2))
        weights = Counter(_words(input))
        ranked = sorted(
            range(len(sentences)),
            key=lambda i: (-sum(weights[w] for w in _words(sentences[i])), i),
        )
        keep = sorted(ranked[:limit])
        summary = " ".join(sentences[i] for i in keep)
        return ModeResult(
            success=True,
            output=summary,
            confidence=clamp(0.5 + 0.1 * min(len(sentences), 4)),
            suggested_next_mode="analyzing",
            metadata={"sentences_in": len(sentences), "sentences_out": len(keep)},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if len(split_sentences(input)) > 4:
            signals.append((0.2, "Long input"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


class AnalyzingMode:
    """Breaks text into components and reports its structure."""

    config = ModeConfig(
        id="analyzing",
        name="Analyzing",
        category="analytical",
        keywords=("analyze", "analyse", "examine", "dissect", "breakdown", "scrutinize", "assess", "evaluate"),
        triggers=(
            r"\banaly[sz]e\b|\banalysis\b",
            r"break (it )?down|deep dive|examine closely",
        ),
        priority=9,
        timeout_ms=150_000,
        max_concurrent_sessions=4,
        description="Intensive structured analysis",
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        sentences = split_sentences(input)
        terms = key_terms(input, 5)
        numbers = re.findall(r"\d+(?:\.\d+)?", input)
        lines = [
            f"Sentences: {len(sentences)}",
            f"Key terms: {', '.join(terms) if terms else 'none'}",
            f"Quantities mentioned: {len(numbers)}",
        ]
        return ModeResult(
            success=True,
            output="\n".join(lines),
            confidence=clamp(0.55 + 0.05 * len(terms)),
            suggested_next_mode="summarizing" if len(sentences) > 3 else None,
            metadata={"terms": terms, "numbers": numbers},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if re.search(r"\d", input):
            signals.append((0.1, "Contains quantities"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in re.split(r"(?<=[.!?])\s+", text.strip()) if s.strip()]


def key_terms(text: str, limit: int) -> List[str]:
    counts = Counter(_words(text))
    # most frequent first, first occurrence breaks ties
    order = {w: i for i, w in reversed(list(enumerate(_words(text))))}
    return sorted(counts, key=lambda w: (-counts[w], order[w]))[:limit]


def _words(text: str) -> List[str]:
    return [w for w in re.findall(r"[a-z]+", text.lower()) if len(w) > 3 and w not in _COMMON]
