"""
Unit tests for tokenization and intent scoring.
"""

from __future__ import annotations

import pytest

from modecore.modes.registry import ModeRegistry
from modecore.recognition.intent import IntentAnalyzer, tokenize


class TestTokenize:
    def test_lowercases_and_strips_punctuation(self):
        assert tokenize("Fix this BUG, I got a stack-trace!") == ["fix", "bug", "got", "stack", "trace"]

    def test_drops_short_tokens_and_stop_words(self):
        assert tokenize("can you do it for me and the team") == ["team"]

    def test_empty_input(self):
        assert tokenize("") == []
        assert tokenize("?!...") == []


class TestIntentAnalyzer:
    @pytest.fixture
    def analyzer(self, registry):
        return IntentAnalyzer(registry)

    def test_bug_report_scores_debugging(self, analyzer):
        r = analyzer.analyze("fix this bug, I got a stack trace")
        assert r.mode == "debugging"
        assert r.category == "validation"
        assert r.matched
        assert r.pattern_hits == 2
        assert r.keyword_hits == 3              # fix, bug, "stack trace"
        assert r.scores["debugging"] == 7
        assert r.confidence == 1.0

    def test_single_keyword_confidence(self, analyzer):
        r = analyzer.analyze("optimize this loop")
        assert r.mode == "optimizing"
        assert r.tokens == ["optimize", "loop"]
        # 0.5 + 0.2 * 1 pattern + 0.3 * 1/2 keywords
        assert r.confidence == pytest.approx(0.85)

    def test_no_match_falls_back_to_default(self, analyzer):
        r = analyzer.analyze("ok thanks")
        assert r.mode == "thinking"
        assert not r.matched
        assert r.confidence == pytest.approx(0.5)
        assert all(score == 0 for score in r.scores.values())

    def test_every_mode_is_scored(self, analyzer, registry):
        r = analyzer.analyze("anything at all")
        assert list(r.scores) == registry.ids()

    def test_confidence_always_bounded(self, analyzer):
        for text in [
            "",
            "error error error bug bug crash traceback exception fail broken",
            "compare redis vs memcached: pros and cons, which is better",
            "x" * 5000,
        ]:
            r = analyzer.analyze(text)
            assert 0.0 <= r.confidence <= 1.0

    def test_equal_scores_go_to_first_registered(self, stub_mode):
        reg = ModeRegistry([
            stub_mode("thinking"),
            stub_mode("alpha", keywords=("shared",)),
            stub_mode("beta", keywords=("shared",)),
        ])
        r = IntentAnalyzer(reg).analyze("shared word")
        assert r.scores["alpha"] == r.scores["beta"] == 1
        assert r.mode == "alpha"

    def test_multi_word_keyword_needs_adjacent_tokens(self, stub_mode):
        reg = ModeRegistry([stub_mode("thinking"), stub_mode("tracer", keywords=("stack trace",))])
        analyzer = IntentAnalyzer(reg)
        assert analyzer.analyze("a stack trace appeared").keyword_hits == 1
        assert analyzer.analyze("the trace of the stack").scores["tracer"] == 0

    def test_deterministic(self, analyzer):
        text = "please review my code and write unit tests"
        assert analyzer.analyze(text) == analyzer.analyze(text)
