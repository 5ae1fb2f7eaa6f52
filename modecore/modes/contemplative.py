"""
Contemplative modes.
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

_PROMPTS = {
    "went_well": "What went well, and why?",
    "went_wrong": "What did not go as expected?",
    "change": "What would you do differently next time?",
}


class ReflectingMode:
    """Retrospective prompts on work already done."""

    config = ModeConfig(
        id="reflecting",
        name="Reflecting",
        category="contemplative",
        keywords=("reflect", "retrospective", "lessons", "looking back", "learned", "hindsight"),
        triggers=(
            r"reflect|retrospective|retro\b",
            r"looking back|in hindsight|lessons learned",
        ),
        priority=5,
        timeout_ms=90_000,
        max_concurrent_sessions=10,
        description="Retrospection on past work",
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        negative = bool(re.search(r"fail|went wrong|mistake|regret|missed", input, re.IGNORECASE))
        keys = ["went_wrong", "change", "went_well"] if negative else ["went_well", "went_wrong", "change"]
        return ModeResult(
            success=True,
            output="\n".join(f"- {_PROMPTS[k]}" for k in keys),
            confidence=0.7,
            suggested_next_mode="planning",
            metadata={"tone": "negative" if negative else "neutral"},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        return assess(self.config, input, context)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)
