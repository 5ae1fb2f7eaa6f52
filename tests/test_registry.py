"""
Unit tests for the mode registry: validation, capacity, timeouts and failures.
"""

from __future__ import annotations

import pytest

from modecore.errors import (
    CapacityExceededError,
    InvalidModeReferenceError,
    ProcessingFailureError,
    ProcessingTimeoutError,
    RegistryConfigError,
)
from modecore.modes.base import ModeContext
from modecore.modes.catalog import default_modes
from modecore.modes.registry import ModeRegistry


def _ctx(session_id="s1", input="", **metadata):
    return ModeContext(session_id=session_id, user_id="u1", input=input, metadata=metadata)


class TestValidation:
    def test_default_catalog_loads(self, registry):
        assert len(registry) == 16
        assert len(registry.by_category()) == 7
        assert registry.ids()[0] == "thinking"

    def test_duplicate_id_rejected(self, stub_mode):
        with pytest.raises(RegistryConfigError, match="Duplicate"):
            ModeRegistry([stub_mode("a"), stub_mode("a")])

    def test_malformed_trigger_rejected(self, stub_mode):
        with pytest.raises(RegistryConfigError, match="malformed trigger"):
            ModeRegistry([stub_mode("a", triggers=("([",))])

    def test_inverted_length_bounds_rejected(self, stub_mode):
        with pytest.raises(RegistryConfigError):
            ModeRegistry([stub_mode("a", min_input_length=50, max_input_length=10)])

    def test_empty_registry_rejected(self):
        with pytest.raises(RegistryConfigError):
            ModeRegistry([])

    def test_unknown_mode(self, registry):
        with pytest.raises(InvalidModeReferenceError) as exc:
            registry.get("juggling")
        assert exc.value.mode_id == "juggling"
        assert "juggling" not in registry


class TestCapacity:
    async def test_capacity_exceeded(self, stub_mode):
        reg = ModeRegistry([stub_mode("solo", max_concurrent_sessions=1)])
        await reg.activate("solo", _ctx("s1"))
        with pytest.raises(CapacityExceededError) as exc:
            await reg.activate("solo", _ctx("s2"))
        assert exc.value.limit == 1
        assert reg.active_sessions("solo") == 1

    async def test_reactivating_same_session_is_not_counted_twice(self, stub_mode):
        reg = ModeRegistry([stub_mode("solo", max_concurrent_sessions=1)])
        await reg.activate("solo", _ctx("s1"))
        await reg.activate("solo", _ctx("s1"))
        assert reg.active_sessions("solo") == 1

    async def test_deactivate_frees_a_slot(self, stub_mode):
        reg = ModeRegistry([stub_mode("solo", max_concurrent_sessions=1)])
        await reg.activate("solo", _ctx("s1"))
        await reg.deactivate("solo", "s1")
        assert reg.has_capacity("solo")
        await reg.activate("solo", _ctx("s2"))

    async def test_activation_failure_wrapped(self, stub_mode):
        reg = ModeRegistry([stub_mode("fragile", fail_activate=True)])
        with pytest.raises(ProcessingFailureError, match="activation refused"):
            await reg.activate("fragile", _ctx())
        assert reg.active_sessions("fragile") == 0


class TestProcess:
    async def test_success_records_metrics(self, stub_mode):
        reg = ModeRegistry([stub_mode("echo", confidence=0.9)])
        result = await reg.process("echo", "hello", _ctx())
        assert result.success
        assert result.output == "echo: hello"
        assert result.duration_ms is not None
        m = reg.metrics("echo")
        assert m.processed == 1
        assert m.errors == 0

    async def test_confidence_clamped(self, stub_mode):
        reg = ModeRegistry([stub_mode("eager", confidence=3.5)])
        result = await reg.process("eager", "hello", _ctx())
        assert result.confidence == 1.0

    async def test_timeout(self, stub_mode):
        reg = ModeRegistry([stub_mode("slow", delay_s=1.0, timeout_ms=20)])
        with pytest.raises(ProcessingTimeoutError) as exc:
            await reg.process("slow", "hello", _ctx())
        assert exc.value.timeout_ms == 20
        assert reg.metrics("slow").errors == 1

    async def test_failure_wrapped(self, stub_mode):
        reg = ModeRegistry([stub_mode("buggy", fail_process=True)])
        with pytest.raises(ProcessingFailureError) as exc:
            await reg.process("buggy", "hello", _ctx())
        assert exc.value.mode_id == "buggy"
        assert "cannot process this" in str(exc.value)
        m = reg.metrics("buggy")
        assert m.success_rate < 1.0

    async def test_input_bounds_enforced(self, stub_mode):
        reg = ModeRegistry([stub_mode("picky", min_input_length=10, max_input_length=20)])
        with pytest.raises(ProcessingFailureError, match="shorter"):
            await reg.process("picky", "short", _ctx())
        with pytest.raises(ProcessingFailureError, match="longer"):
            await reg.process("picky", "x" * 21, _ctx())

    async def test_required_context_enforced(self, stub_mode):
        reg = ModeRegistry([stub_mode("scoped", required_context=("project",))])
        with pytest.raises(ProcessingFailureError, match="missing required context"):
            await reg.process("scoped", "hello", _ctx())
        result = await reg.process("scoped", "hello", _ctx(project="cme"))
        assert result.success


class TestCanHandle:
    @pytest.mark.parametrize("text", [
        "",
        "fix this bug, I got a stack trace",
        "compare redis vs memcached",
        "teach me the basics of python, I'm a beginner",
        "error " * 200,
    ])
    def test_every_mode_bounded(self, registry, text):
        for mode_id in registry.ids():
            r = registry.can_handle(mode_id, text, _ctx(input=text))
            assert 0.0 <= r.confidence <= 1.0

    def test_rank_most_confident_first(self, registry):
        ranked = registry.rank("fix this bug, I got a stack trace", _ctx())
        assert ranked[0][0] == "debugging"
        confidences = [r.confidence for _, r in ranked]
        assert confidences == sorted(confidences, reverse=True)

    def test_missing_context_means_zero(self, stub_mode):
        reg = ModeRegistry([stub_mode("scoped", keywords=("hello",), required_context=("project",))])
        assert reg.can_handle("scoped", "hello", _ctx()).confidence == 0.0

    def test_fresh_catalog_instances_are_independent(self):
        a = ModeRegistry(default_modes())
        b = ModeRegistry(default_modes())
        assert a.ids() == b.ids()
        assert a.get("thinking") is not b.get("thinking")
