"""
Structural modes — planning, organizing and implementing.
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


class PlanningMode:
    """Breaks a goal into ordered milestones."""

    config = ModeConfig(
        id="planning",
        name="Planning",
        category="structural",
        keywords=("plan", "roadmap", "milestone", "schedule", "timeline", "strategy", "steps", "phases"),
        triggers=(
            r"\bplan\b|\bplanning\b|roadmap",
            r"milestone|timeline|schedule",
            r"step by step|next steps",
        ),
        priority=8,
        timeout_ms=120_000,
        max_concurrent_sessions=10,
        description="Goal decomposition and sequencing",
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        horizon = _horizon(input)
        milestones = ["Define the outcome", "Identify dependencies", "Sequence the work",
                      "Set checkpoints"]
        if horizon != "short":
            milestones.append("Review and re-plan at each checkpoint")
        return ModeResult(
            success=True,
            output=f"Plan ({horizon} term):\n" + "\n".join(f"{i + 1}. {m}" for i, m in enumerate(milestones)),
            confidence=0.75,
            suggested_next_mode="implementing",
            metadata={"horizon": horizon, "milestones": len(milestones)},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if _horizon(input) != "short":
            signals.append((0.1, "Time horizon mentioned"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


class OrganizingMode:
    """Groups loose items into categories."""

    config = ModeConfig(
        id="organizing",
        name="Organizing",
        category="structural",
        keywords=("organize", "organise", "sort", "arrange", "categorize", "group", "tidy", "structure"),
        triggers=(
            r"organi[sz]e|arrange|categori[sz]e",
            r"\bsort\b|\bgroup\b|tidy up",
        ),
        priority=6,
        timeout_ms=90_000,
        max_concurrent_sessions=10,
        description="Arranges information into structure",
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        items = _items(input)
        groups = {}
        for item in items:
            groups.setdefault(item[:1].upper() or "#", []).append(item)
        lines = [f"{key}: {', '.join(values)}" for key, values in sorted(groups.items())]
        return ModeResult(
            success=True,
            output="\n".join(lines) if lines else "No list items found to organize.",
            confidence=clamp(0.5 + 0.05 * len(items)),
            metadata={"items": len(items), "groups": len(groups)},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if len(_items(input)) >= 3:
            signals.append((0.2, "Input contains a list"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


class ImplementingMode:
    """Turns a decided approach into concrete build steps."""

    config = ModeConfig(
        id="implementing",
        name="Implementing",
        category="structural",
        keywords=("implement", "build", "code", "develop", "write", "create", "construct"),
        triggers=(
            r"implement|build|develop",
            r"write (a|the|some) (function|class|module|script)",
            r"\bcode (for|that)\b",
        ),
        priority=8,
        timeout_ms=180_000,
        max_concurrent_sessions=6,
        description="Executes a design as working code",
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        language = context.metadata.get("language") or _language(input)
        steps = ["Write the interface first", "Implement the simplest working path",
                 "Handle error cases", "Add tests for each branch"]
        return ModeResult(
            success=True,
            output=(f"Implementation steps ({language}):\n" if language else "Implementation steps:\n")
                   + "\n".join(f"- {s}" for s in steps),
            confidence=0.7 if language else 0.6,
            suggested_next_mode="testing",
            metadata={"language": language},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if _language(input):
            signals.append((0.1, "Programming language mentioned"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


def _horizon(text: str) -> str:
    lowered = text.lower()
    if re.search(r"quarter|year|annual|long.term", lowered):
        return "long"
    if re.search(r"month|sprint|weeks", lowered):
        return "medium"
    return "short"


def _items(text: str) -> List[str]:
    bullets = re.findall(r"^\s*(?:[-*]|\d+[.)])\s*(.+)$", text, re.MULTILINE)
    if bullets:
        return [b.strip() for b in bullets]
    if ":" in text:
        text = text.split(":", 1)[1]
    return [p.strip() for p in re.split(r",|;", text) if p.strip()] if "," in text or ";" in text else []


def _language(text: str) -> str:
    m = re.search(r"\b(python|javascript|typescript|go|rust|java|sql|bash)\b", text, re.IGNORECASE)
    return m.group(1).lower() if m else ""
