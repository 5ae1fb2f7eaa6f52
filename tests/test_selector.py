"""
Unit tests for the context analyzer and the weighted mode selector.
"""

from __future__ import annotations

import pytest

from modecore.recognition.context import ContextAnalyzer, SessionTelemetry
from modecore.recognition.intent import IntentAnalyzer
from modecore.recognition.selector import ModeSelector


class TestContextAnalyzer:
    analyzer = ContextAnalyzer()

    def test_no_factors_by_default(self):
        ctx = self.analyzer.analyze(SessionTelemetry())
        assert ctx.factors == []
        assert ctx.current_mode is None
        assert ctx.preferred_modes == []

    def test_recent_errors(self):
        ctx = self.analyzer.analyze(SessionTelemetry(recent_errors_count=2))
        assert ctx.factors == ["recent_errors"]
        assert ctx.project["error_count"] == 2

    @pytest.mark.parametrize("hour,after", [(8, True), (9, False), (17, False), (18, True), (23, True)])
    def test_after_hours(self, hour, after):
        ctx = self.analyzer.analyze(SessionTelemetry(time_of_day=hour))
        assert ("after_hours" in ctx.factors) is after

    def test_long_session(self):
        assert self.analyzer.analyze(SessionTelemetry(session_duration_s=3600)).factors == []
        assert self.analyzer.analyze(SessionTelemetry(session_duration_s=3601)).factors == ["long_session"]

    def test_factor_order(self):
        ctx = self.analyzer.analyze(
            SessionTelemetry(recent_errors_count=1, time_of_day=22, session_duration_s=7200)
        )
        assert ctx.factors == ["recent_errors", "after_hours", "long_session"]

    def test_preferences_come_from_source(self):
        analyzer = ContextAnalyzer(lambda user_id: ["testing"] if user_id == "u1" else [])
        assert analyzer.analyze(SessionTelemetry(user_id="u1")).preferred_modes == ["testing"]
        assert analyzer.analyze(SessionTelemetry(user_id="u2")).preferred_modes == []


class TestModeSelector:
    @pytest.fixture
    def parts(self, registry):
        return IntentAnalyzer(registry), ModeSelector(registry)

    def _select(self, parts, text, telemetry=None, preferences=None):
        intent_analyzer, selector = parts
        context_analyzer = ContextAnalyzer(preferences) if preferences else ContextAnalyzer()
        intent = intent_analyzer.analyze(text)
        context = context_analyzer.analyze(telemetry or SessionTelemetry())
        return selector.select(intent, context)

    def test_clear_bug_report(self, parts):
        s = self._select(parts, "fix this bug, I got a stack trace")
        assert s.mode == "debugging"
        assert s.scores["debugging"] == pytest.approx(0.4)
        # 1.0 * 0.6 + 0.1 (no factors) + 0.1
        assert s.confidence == pytest.approx(0.8)
        assert s.alternatives == ["testing", "reviewing"]
        assert s.reasoning.startswith("Intent: debugging (100% confidence)")
        assert s.reasoning.endswith("Recommended: debugging")

    def test_continuity_keeps_current_mode(self, parts):
        s = self._select(parts, "ok thanks", SessionTelemetry(current_mode="debugging"))
        assert s.mode == "debugging"
        assert s.scores["debugging"] == pytest.approx(0.1)
        # 0.5 * 0.6 + 0.1 + 0.1
        assert s.confidence == pytest.approx(0.5)
        assert "Intent: no keyword or pattern match" in s.reasoning
        assert "Continuity: debugging" in s.reasoning

    def test_intent_outweighs_error_factor(self, parts):
        s = self._select(parts, "optimize this loop", SessionTelemetry(recent_errors_count=1))
        assert s.mode == "optimizing"
        assert s.scores["optimizing"] == pytest.approx(0.34)
        assert s.scores["debugging"] == pytest.approx(0.3)
        # 0.85 * 0.6 + 0.3 (factors present) + 0.1
        assert s.confidence == pytest.approx(0.91)
        assert s.alternatives == ["debugging", "thinking", "comparing"]
        assert "Context: recent_errors" in s.reasoning

    def test_recent_errors_alone_selects_debugging(self, parts):
        s = self._select(parts, "ok thanks", SessionTelemetry(recent_errors_count=3))
        assert s.mode == "debugging"

    def test_nothing_scores_returns_default(self, parts):
        s = self._select(parts, "ok thanks")
        assert s.mode == "thinking"
        assert all(v == 0 for v in s.scores.values())
        assert s.confidence == pytest.approx(0.5)

    def test_preference_wins_when_nothing_else_scores(self, parts):
        s = self._select(parts, "ok thanks", preferences=lambda _: ["reviewing"])
        assert s.mode == "reviewing"
        assert "Preferred: reviewing" in s.reasoning

    def test_equal_scores_go_to_first_registered(self, parts):
        # testing is registered before reviewing
        s = self._select(parts, "ok thanks", preferences=lambda _: ["reviewing", "testing"])
        assert s.scores["testing"] == s.scores["reviewing"]
        assert s.mode == "testing"

    def test_after_hours_raises_confidence_only(self, parts):
        s = self._select(parts, "ok thanks", SessionTelemetry(time_of_day=22))
        assert s.mode == "thinking"
        assert s.confidence == pytest.approx(0.7)

    def test_alternatives_never_include_choice_and_are_capped(self, parts):
        s = self._select(
            parts,
            "compare these two approaches",
            SessionTelemetry(recent_errors_count=1, current_mode="planning"),
            preferences=lambda _: ["testing", "reviewing", "designing"],
        )
        assert s.mode not in s.alternatives
        assert len(s.alternatives) <= 3
        assert len(set(s.alternatives)) == len(s.alternatives)
