"""
Behaviour of the built-in mode catalog.
"""

from __future__ import annotations

import pytest

from modecore.errors import ProcessingFailureError
from modecore.modes.base import Mode, ModeContext
from modecore.modes.validation import classify_error, error_severity

# one representative request per mode
SAMPLES = {
    "thinking": "why does the cache miss on every request?",
    "debugging": "TypeError: unsupported operand type(s) for +: 'int' and 'str'",
    "optimizing": "the endpoint is slow, make it faster",
    "brainstorming": "brainstorm ideas for a new onboarding flow",
    "researching": "research best practice for structuring python packages",
    "summarizing": (
        "Summarize this: the service handles requests. It caches responses in memory. "
        "Cache entries expire after one hour. Misses go to the database."
    ),
    "comparing": "compare redis vs memcached",
    "analyzing": "analyze the latency numbers: 120ms p50, 900ms p99",
    "testing": "write integration tests for the payments api",
    "reviewing": "review my code before I merge the pull request",
    "designing": "design a wireframe for the signup page",
    "planning": "plan the milestones for next quarter",
    "organizing": "organize these: apples, carrots, pears, leeks",
    "implementing": "implement the signup form in python",
    "teaching": "teach me the basics of asyncio, I'm a beginner",
    "reflecting": "looking back, what lessons learned should I note?",
}


def _ctx(input="", **metadata):
    return ModeContext(session_id="s1", user_id="u1", input=input, metadata=metadata)


class TestCatalog:
    def test_every_mode_has_a_sample(self, registry):
        assert set(SAMPLES) == set(registry.ids())

    def test_modes_satisfy_protocol(self, registry):
        assert all(isinstance(m, Mode) for m in registry)

    @pytest.mark.parametrize("mode_id", sorted(SAMPLES))
    async def test_full_lifecycle(self, registry, mode_id):
        text = SAMPLES[mode_id]
        ctx = _ctx(text)
        await registry.activate(mode_id, ctx)
        result = await registry.process(mode_id, text, ctx)
        await registry.deactivate(mode_id, "s1")
        assert result.success
        assert result.output
        assert 0.0 <= result.confidence <= 1.0
        if result.suggested_next_mode is not None:
            assert result.suggested_next_mode in registry

    @pytest.mark.parametrize("mode_id", sorted(SAMPLES))
    def test_sample_is_recognized_by_its_mode(self, registry, mode_id):
        ranked = [mid for mid, _ in registry.rank(SAMPLES[mode_id], _ctx())]
        assert mode_id in ranked[:5]


class TestSpecificModes:
    async def test_debugging_classifies_error(self, registry):
        result = await registry.process("debugging", SAMPLES["debugging"], _ctx())
        assert result.metadata["error_type"] == "type"
        assert result.suggested_next_mode == "testing"

    def test_error_helpers(self):
        assert classify_error("SyntaxError: invalid syntax") == "syntax"
        assert classify_error("connection refused by host") == "network"
        assert classify_error("the total is wrong") == "logic"
        assert error_severity("production outage after deploy") == "critical"
        assert error_severity("nothing obvious") == "low"

    async def test_comparing_needs_two_subjects(self, registry):
        one = await registry.process("comparing", "compare redis", _ctx())
        assert one.confidence == pytest.approx(0.4)
        two = await registry.process("comparing", "difference between rust and go?", _ctx())
        assert two.metadata["subjects"] == ["rust", "go"]

    async def test_summarizing_rejects_short_input(self, registry):
        with pytest.raises(ProcessingFailureError, match="shorter than 20"):
            await registry.process("summarizing", "too short", _ctx())

    async def test_summarizing_keeps_requested_sentence_count(self, registry):
        result = await registry.process(
            "summarizing", SAMPLES["summarizing"], _ctx(summary_sentences=1)
        )
        assert result.metadata["sentences_in"] == 4
        assert result.metadata["sentences_out"] == 1

    async def test_testing_picks_level(self, registry):
        result = await registry.process("testing", SAMPLES["testing"], _ctx())
        assert result.metadata["level"] == "integration"

    async def test_teaching_level_from_context_wins(self, registry):
        result = await registry.process("teaching", "explain generators", _ctx(level="advanced"))
        assert result.metadata["level"] == "advanced"

    async def test_thinking_question_type(self, registry):
        result = await registry.process("thinking", "how does dns work", _ctx())
        assert result.metadata["question_type"] == "how"
        assert result.suggested_next_mode == "teaching"
