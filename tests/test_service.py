"""
ModeEngine wiring: events reach history, analytics and the indicator; history
survives a restart when persistence is enabled.
"""

from __future__ import annotations

import pytest

from modecore.config import Config
from modecore.errors import InvalidModeReferenceError, UnsupportedFormatError
from modecore.recognition.context import SessionTelemetry
from modecore.service import ModeEngine
from modecore.settings import update_settings


@pytest.fixture
def cfg(tmp_path):
    return Config(data_dir=tmp_path)


def _tel(session_id="s1", user_id="alice", **kw):
    return SessionTelemetry(session_id=session_id, user_id=user_id, **kw)


class TestEngine:
    async def test_interaction_is_recorded_everywhere(self, cfg):
        async with ModeEngine(cfg) as engine:
            outcome = await engine.handle("fix this bug, I got a stack trace", _tel())
            assert outcome.current_mode == "debugging"
            # history is readable as soon as handle() returns
            [entry] = engine.query_history(session_id="s1")
            assert entry.action == "activate"
            assert engine.get_session_summary("s1").most_used_mode == "debugging"
            assert engine.indicator.render("s1") == "[validation] debugging"

            await engine.close_session("s1")
            assert engine.indicator.render("s1") == ""
            assert engine.get_session_summary("s1").closed

    async def test_preferences_feed_recognition(self, cfg):
        async with ModeEngine(cfg) as engine:
            for _ in range(3):
                await engine.transition("old", "reviewing", user_id="alice")
            assert engine.preferred_modes("alice")[0] == "reviewing"
            r = engine.recognize("ok thanks", _tel(session_id="new"))
            assert r.recommended_mode == "reviewing"
            assert "reviewing" in r.metadata["preferred_modes"]

    async def test_preference_settings_apply(self, cfg):
        async with ModeEngine(cfg) as engine:
            await engine.transition("s1", "reviewing", user_id="alice")
            await engine.transition("s1", "planning", user_id="alice")
            update_settings({"preference_top_n": 1})
            assert engine.preferred_modes("alice") == ["planning"]

    async def test_unknown_default_mode_rejected(self, tmp_path):
        with pytest.raises(InvalidModeReferenceError):
            ModeEngine(Config(data_dir=tmp_path, default_mode="dreaming"))

    async def test_shutdown_closes_sessions(self, cfg):
        engine = ModeEngine(cfg)
        await engine.start()
        await engine.handle("optimize this loop", _tel())
        await engine.shutdown()
        assert len(engine.sessions) == 0
        actions = [e.action for e in engine.history.entries()]
        assert actions == ["activate", "deactivate"]
        assert engine.history.entries()[-1].reason == "shutdown"

    async def test_export_uses_default_format_setting(self, cfg):
        async with ModeEngine(cfg) as engine:
            await engine.transition("s1", "thinking")
            assert engine.export_history().lstrip().startswith("[")
            update_settings({"export_format": "table"})
            assert engine.export_history().startswith("id,sessionId")
            with pytest.raises(UnsupportedFormatError):
                engine.export_history("yaml")

    async def test_import_rebuilds_analytics(self, cfg, tmp_path):
        async with ModeEngine(cfg) as source:
            await source.transition("s1", "planning", user_id="bob")
            await source.close_session("s1")
            exported = source.export_history("structured")

        async with ModeEngine(Config(data_dir=tmp_path / "other")) as target:
            assert target.import_history(exported) == 2
            assert target.get_user_analytics("bob").total_entries == 2
            assert target.get_session_summary("s1").closed

    async def test_cleanup_job_is_idempotent(self, cfg):
        async with ModeEngine(cfg) as engine:
            engine.history.record("old", "u1", "thinking", "activate", timestamp=1.0)
            await engine._cleanup_job()
            await engine._cleanup_job()
            assert len(engine.history) == 0
            assert engine.get_session_summary("old") is None

    async def test_mode_statistics_validates_mode(self, cfg):
        async with ModeEngine(cfg) as engine:
            with pytest.raises(InvalidModeReferenceError):
                engine.mode_statistics("juggling")

    async def test_can_handle_ranks_all_modes(self, cfg):
        async with ModeEngine(cfg) as engine:
            ranked = engine.can_handle("compare redis vs memcached")
            assert len(ranked) == 16
            assert ranked[0][0] == "comparing"


class TestPersistence:
    async def test_history_survives_restart(self, tmp_path):
        cfg = Config(data_dir=tmp_path, persist_history=True)
        async with ModeEngine(cfg) as first:
            await first.handle("fix this bug, I got a stack trace", _tel())
            await first.handle("optimize this loop", _tel())
        assert cfg.history_db_path.exists()

        async with ModeEngine(cfg) as second:
            actions = [e.action for e in second.history.entries()]
            assert actions == ["activate", "transition", "deactivate"]
            summary = second.get_session_summary("s1")
            assert summary.unique_modes_used == ["debugging", "optimizing"]
            assert second.get_user_analytics("alice").total_entries == 3
