"""
Context Analyzer — maps session telemetry and the user's history to the
situational factors and preferences the selector weighs.

Factors (checked in this order):
  recent_errors  — at least one error reported in the session
  after_hours    — local hour before 9:00 or after 17:59
  long_session   — session running for more than an hour
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

LONG_SESSION_S = 3600
WORKDAY_START_HOUR = 9
WORKDAY_END_HOUR = 17

PreferenceSource = Callable[[str], List[str]]


@dataclass
class SessionTelemetry:
    session_id: str = "default"
    user_id: str = "anonymous"
    recent_errors_count: int = 0
    active_files: List[str] = field(default_factory=list)
    time_of_day: Optional[int] = None       # local hour 0-23
    session_duration_s: float = 0.0
    current_mode: Optional[str] = None
    language: Optional[str] = None
    project_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ContextResult:
    current_mode: Optional[str]
    factors: List[str]
    preferred_modes: List[str]
    project: Dict[str, Any] = field(default_factory=dict)


def _no_preferences(user_id: str) -> List[str]:
    return []


class ContextAnalyzer:
    """
    *preferences* returns the user's preferred modes, most preferred first.
    The engine wires it to the analytics aggregator; tests pass a plain
    function.
    """

    def __init__(self, preferences: PreferenceSource = _no_preferences):
        self._preferences = preferences

    def analyze(self, telemetry: SessionTelemetry) -> ContextResult:
        factors: List[str] = []
        if telemetry.recent_errors_count > 0:
            factors.append("recent_errors")
        hour = telemetry.time_of_day
        if hour is not None and (hour < WORKDAY_START_HOUR or hour > WORKDAY_END_HOUR):
            factors.append("after_hours")
        if telemetry.session_duration_s > LONG_SESSION_S:
            factors.append("long_session")

        return ContextResult(
            current_mode=telemetry.current_mode,
            factors=factors,
            preferred_modes=list(self._preferences(telemetry.user_id)),
            project={
                "language": telemetry.language,
                "project_type": telemetry.project_type,
                "active_files": list(telemetry.active_files),
                "error_count": telemetry.recent_errors_count,
            },
        )
