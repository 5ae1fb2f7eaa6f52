"""
Creative modes — brainstorming and designing.
"""

from __future__ import annotations

import re
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

_TECHNIQUES = (
    ("Substitute", "What could replace {topic}?"),
    ("Combine", "What could {topic} be merged with?"),
    ("Adapt", "Where has something like {topic} already worked?"),
    ("Reverse", "What if {topic} worked the opposite way?"),
    ("Eliminate", "What happens if part of {topic} is removed?"),
)


class BrainstormingMode:
    """Loosens constraints to generate many varied ideas."""

    config = ModeConfig(
        id="brainstorming",
        name="Brainstorming",
        category="creative",
        keywords=(
            "idea", "ideas", "brainstorm", "creative", "concept", "innovative",
            "alternative", "possibility", "inspiration", "imagine",
        ),
        triggers=(
            r"idea|brainstorm|think|concept|approach",
            r"what if|alternative|option|possibility",
            r"creative|innovative|new way",
        ),
        priority=6,
        timeout_ms=120_000,
        max_concurrent_sessions=12,
        description="Divergent idea generation",
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        topic = _topic(input)
        count = int(context.metadata.get("idea_count", len(_TECHNIQUES)))
        prompts = [f"{name}: {template.format(topic=topic)}"
                   for name, template in _TECHNIQUES[:max(count, 1)]]
        return ModeResult(
            success=True,
            output="\n".join(prompts),
            confidence=0.75,
            suggested_next_mode="designing",
            metadata={"topic": topic, "ideas": len(prompts)},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if re.search(r"\b(many|several|list of|some)\b.*\b(ideas|ways|options)\b", input, re.IGNORECASE):
            signals.append((0.3, "Asks for several options"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


class DesigningMode:
    """Turns a goal into a concrete design outline."""

    config = ModeConfig(
        id="designing",
        name="Designing",
        category="creative",
        keywords=("design", "craft", "blueprint", "prototype", "sketch", "mockup", "wireframe", "layout"),
        triggers=(
            r"\bdesign\b",
            r"prototype|mockup|wireframe",
            r"blueprint|sketch",
        ),
        priority=7,
        timeout_ms=120_000,
        max_concurrent_sessions=8,
        description="Solution and interface design",
    )

    _PHASES = ("Goals and constraints", "Components", "Interactions", "Open risks")

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        is_ui = bool(re.search(r"\b(ui|ux|screen|page|layout|wireframe|mockup)\b", input, re.IGNORECASE))
        phases: List[str] = list(self._PHASES)
        if is_ui:
            phases.insert(2, "Screens and navigation")
        return ModeResult(
            success=True,
            output="Design outline for " + _topic(input) + ":\n"
                   + "\n".join(f"{i + 1}. {p}" for i, p in enumerate(phases)),
            confidence=clamp(0.65 + (0.1 if is_ui else 0.0)),
            suggested_next_mode="implementing",
            metadata={"interface": is_ui, "phases": len(phases)},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        return assess(self.config, input, context)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


def _topic(text: str) -> str:
    m = re.search(r"\b(?:for|about|on|of)\s+(.+?)(?:[?.!]|$)", text, re.IGNORECASE)
    if m:
        return m.group(1).strip()
    words = re.findall(r"\w+", text)
    return " ".join(words[-3:]) if words else "the problem"
