"""
Mode indicator — the display-side consumer of transition events.

It only ever sees a session's current mode and that mode's category. How the
pair is shown (colours, symbols) belongs to whatever renders the text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from .session.events import TransitionAction, TransitionEvent


@dataclass(frozen=True)
class IndicatorState:
    current_mode: str
    category: str

    def render(self) -> str:
        return f"[{self.category}] {self.current_mode}"


class ModeIndicator:

    def __init__(self):
        self._states: Dict[str, IndicatorState] = {}

    def on_event(self, event: TransitionEvent) -> None:
        if event.action == TransitionAction.DEACTIVATE:
            self._states.pop(event.session_id, None)
        else:
            self._states[event.session_id] = IndicatorState(event.mode_id, event.category)

    def state(self, session_id: str) -> Optional[IndicatorState]:
        return self._states.get(session_id)

    def render(self, session_id: str) -> str:
        state = self._states.get(session_id)
        return state.render() if state else ""
