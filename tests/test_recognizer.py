"""
Unit tests for the recognize() entry point.
"""

from __future__ import annotations

import pytest

from modecore.recognition.context import ContextAnalyzer, SessionTelemetry
from modecore.recognition.recognizer import Recognizer


class TestRecognizer:
    @pytest.fixture
    def recognizer(self, registry):
        return Recognizer(registry)

    def test_bug_report(self, recognizer):
        r = recognizer.recognize("fix this bug, I got a stack trace")
        assert r.recommended_mode == "debugging"
        assert r.confidence == pytest.approx(0.8)
        assert r.metadata["intent"] == "debugging"
        assert r.metadata["intent_matched"] is True
        assert r.metadata["category"] == "validation"
        assert r.metadata["degraded"] is False
        assert r.metadata["scores"] == {"debugging": pytest.approx(0.4)}

    def test_telemetry_is_optional(self, recognizer):
        r = recognizer.recognize("ok thanks")
        assert r.recommended_mode == "thinking"
        assert r.metadata["situational_factors"] == []

    def test_same_input_same_result(self, recognizer):
        telemetry = SessionTelemetry(recent_errors_count=1, time_of_day=20, current_mode="planning")
        a = recognizer.recognize("optimize this loop", telemetry)
        b = recognizer.recognize("optimize this loop", telemetry)
        assert a.to_dict() == b.to_dict()

    @pytest.mark.parametrize("text", [
        "",
        "   ",
        "fix this bug, I got a stack trace",
        "brainstorm ideas then plan the roadmap and implement it",
        "🙂" * 100,
    ])
    def test_confidence_bounded(self, recognizer, text):
        r = recognizer.recognize(text, SessionTelemetry(recent_errors_count=5, session_duration_s=9999))
        assert 0.0 <= r.confidence <= 1.0
        assert r.recommended_mode not in r.alternative_modes

    def test_analyzer_failure_degrades(self, registry):
        def broken(user_id):
            raise RuntimeError("preference store offline")

        r = Recognizer(registry, ContextAnalyzer(broken)).recognize("fix this bug")
        assert r.recommended_mode == "thinking"
        assert r.confidence == pytest.approx(0.1)
        assert r.reasoning.startswith("Degraded recognition")
        assert r.metadata["degraded"] is True
        assert "preference store offline" in r.metadata["error"]

    def test_degraded_failure_is_logged(self, registry, caplog):
        def broken(user_id):
            raise KeyError(user_id)

        with caplog.at_level("ERROR"):
            Recognizer(registry, ContextAnalyzer(broken)).recognize("hello")
        assert any("Recognition degraded" in rec.message for rec in caplog.records)

    def test_custom_default_mode(self, registry):
        r = Recognizer(registry, default_mode="reflecting").recognize("ok thanks")
        assert r.recommended_mode == "reflecting"
