"""
Learning modes.
"""

from __future__ import annotations

import re

from .base import (
    CanHandleResult,
    ModeConfig,
    ModeContext,
    ModeResult,
    SessionClock,
    assess,
)

_LEVELS = {
    "beginner": r"beginner|new to|never used|basics|eli5|simple terms",
    "advanced": r"advanced|in depth|internals|under the hood|expert",
}


class TeachingMode:
    """Explains a topic at the learner's level with a check for understanding."""

    config = ModeConfig(
        id="teaching",
        name="Teaching",
        category="learning",
        keywords=("teach", "learn", "lesson", "tutor", "beginner", "understand", "concepts", "basics"),
        triggers=(
            r"teach me|help me learn|learn about",
            r"\blesson\b|walk me through",
            r"beginner|basics|for dummies",
        ),
        priority=7,
        timeout_ms=120_000,
        max_concurrent_sessions=15,
        description="Structured explanation for learning",
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        level = context.metadata.get("level") or learner_level(input)
        outline = ["Core idea in one sentence", "A worked example", "Common mistakes"]
        if level == "beginner":
            outline.insert(1, "Everyday analogy")
        elif level == "advanced":
            outline.append("Edge cases and internals")
        outline.append("Quick check question")
        return ModeResult(
            success=True,
            output=f"Lesson ({level}):\n" + "\n".join(f"{i + 1}. {s}" for i, s in enumerate(outline)),
            confidence=0.8,
            suggested_next_mode="reflecting",
            metadata={"level": level, "sections": len(outline)},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if learner_level(input) != "intermediate":
            signals.append((0.15, "Learner level stated"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


def learner_level(text: str) -> str:
    for level, pattern in _LEVELS.items():
        if re.search(pattern, text, re.IGNORECASE):
            return level
    return "intermediate"
