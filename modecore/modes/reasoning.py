"""
Reasoning modes — general thinking, optimization and side-by-side comparison.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from .base import (
    CanHandleResult,
    ModeConfig,
    ModeContext,
    ModeResult,
    SessionClock,
    assess,
    clamp,
)

logger = logging.getLogger(__name__)


class ThinkingMode:
    """Default mode: plain step-by-step reasoning about a question."""

    config = ModeConfig(
        id="thinking",
        name="Thinking",
        category="reasoning",
        keywords=("think", "consider", "reason", "logic", "understand", "explain"),
        triggers=(r"\bwhat is\b", r"\bhow does\b", r"\bwhy\b", r"\bexplain\b|\btell me about\b"),
        priority=1,
        timeout_ms=60_000,
        max_concurrent_sessions=20,
        description="Normal reasoning process",
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)
        logger.debug("thinking activated for session %s", context.session_id)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        question_type = _question_type(input)
        steps = [
            "Restate the question in plain terms",
            "List what is already known",
            "Identify what is missing",
        ]
        if question_type == "why":
            steps.append("Trace causes back to a root explanation")
        elif question_type == "how":
            steps.append("Lay out the mechanism in order")
        else:
            steps.append("Form a direct answer and check it against the facts")

        return ModeResult(
            success=True,
            output="\n".join(f"{i + 1}. {s}" for i, s in enumerate(steps)),
            confidence=0.7,
            suggested_next_mode="teaching" if question_type == "how" else None,
            metadata={"question_type": question_type, "steps": len(steps)},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if input.strip().endswith("?"):
            signals.append((0.2, "Input is a question"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


class OptimizingMode:
    """Improves efficiency of code or process: performance, memory, cost."""

    config = ModeConfig(
        id="optimizing",
        name="Optimizing",
        category="reasoning",
        keywords=(
            "optimize", "improve", "enhance", "performance", "efficiency",
            "speed", "faster", "streamline", "minimize", "maximize",
        ),
        triggers=(
            r"optimize|improve|performance|speed|faster",
            r"efficient|better|enhance|refactor",
            r"slow|memory|cpu|resource",
        ),
        priority=7,
        timeout_ms=90_000,
        max_concurrent_sessions=8,
        description="Makes processing or output more efficient",
    )

    _TARGETS = {
        "performance": ("slow", "speed", "faster", "latency", "performance", "loop"),
        "memory": ("memory", "ram", "allocation", "leak"),
        "readability": ("readable", "clean", "refactor", "maintain"),
        "cost": ("cost", "cheaper", "budget", "resource"),
    }

    _STRATEGIES = {
        "performance": ["Profile before changing anything", "Remove repeated work from hot loops",
                        "Cache results that do not change"],
        "memory": ["Stream data instead of loading it whole", "Release large objects early"],
        "readability": ["Extract long functions", "Name intermediate values"],
        "cost": ["Batch external calls", "Scale resources to measured load"],
    }

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        lowered = input.lower()
        targets = [t for t, words in self._TARGETS.items() if any(w in lowered for w in words)]
        if not targets:
            targets = ["performance"]
        strategies: List[str] = []
        for t in targets:
            strategies.extend(self._STRATEGIES[t])
        return ModeResult(
            success=True,
            output="Optimization plan:\n" + "\n".join(f"- {s}" for s in strategies),
            confidence=clamp(0.6 + 0.1 * len(targets)),
            suggested_next_mode="testing",
            metadata={"targets": targets},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if re.search(r"\b(o\(n\^?2\)|bottleneck|profil)", input, re.IGNORECASE):
            signals.append((0.3, "Complexity or profiling vocabulary"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


class ComparingMode:
    """Weighs two or more options against shared criteria."""

    config = ModeConfig(
        id="comparing",
        name="Comparing",
        category="reasoning",
        keywords=(
            "compare", "contrast", "versus", "difference", "similarity",
            "tradeoff", "benchmark", "pros and cons",
        ),
        triggers=(
            r"\bcompare\b|\bcomparison\b",
            r"\bvs\.?\b|\bversus\b",
            r"difference between|pros and cons|which is better",
        ),
        priority=7,
        timeout_ms=90_000,
        max_concurrent_sessions=12,
        description="Contrasts alternatives",
    )

    _CRITERIA = ("cost", "complexity", "performance", "maturity", "fit for purpose")

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        subjects = _subjects(input)
        if len(subjects) < 2:
            return ModeResult(
                success=True,
                output="Name at least two options to compare (e.g. 'A vs B').",
                confidence=0.4,
                metadata={"subjects": subjects},
            )
        header = " | ".join(["criterion"] + subjects)
        rows = [" | ".join([c] + ["?"] * len(subjects)) for c in self._CRITERIA]
        return ModeResult(
            success=True,
            output="\n".join([header] + rows),
            confidence=0.8,
            suggested_next_mode="analyzing",
            metadata={"subjects": subjects, "criteria": list(self._CRITERIA)},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if len(_subjects(input)) >= 2:
            signals.append((0.3, "Two or more subjects detected"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


def _question_type(text: str) -> Optional[str]:
    lowered = text.lower().strip()
    for word in ("why", "how", "what", "when", "where", "who"):
        if re.search(rf"\b{word}\b", lowered):
            return word
    return None


def _subjects(text: str) -> List[str]:
    m = re.search(r"between\s+(.+?)\s+and\s+(.+?)(?:[?.!]|$)", text, re.IGNORECASE)
    if m:
        return [m.group(1).strip(), m.group(2).strip()]
    parts = [p.strip(" ?.!") for p in re.split(r"\s+(?:vs\.?|versus)\s+", text, flags=re.IGNORECASE)]
    parts = [p for p in parts if p]
    if len(parts) >= 2:
        # "is redis vs memcached faster" → last word before, first word after
        return [parts[0].split()[-1]] + [p.split()[0] for p in parts[1:]]
    return []
