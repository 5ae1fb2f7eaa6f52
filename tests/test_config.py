"""
Config loading: dataclass defaults with CME_* environment overrides.
"""

from __future__ import annotations

from pathlib import Path

from modecore.config import Config


class TestConfig:
    def test_defaults(self):
        cfg = Config()
        assert cfg.default_mode == "thinking"
        assert cfg.history_max_entries == 10_000
        assert cfg.retention_days == 90
        assert cfg.persist_history is False

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CME_API_PORT", "9000")
        monkeypatch.setenv("CME_RETENTION_DAYS", "30")
        monkeypatch.setenv("CME_PERSIST_HISTORY", "yes")
        cfg = Config.load()
        assert cfg.api_port == 9000
        assert cfg.retention_days == 30
        assert cfg.persist_history is True

    def test_false_string_is_false(self, monkeypatch):
        monkeypatch.setenv("CME_PERSIST_HISTORY", "false")
        assert Config.load().persist_history is False

    def test_data_dir_is_a_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CME_DATA_DIR", str(tmp_path))
        cfg = Config.load()
        assert isinstance(cfg.data_dir, Path)
        assert cfg.history_db_path == tmp_path / "history.db"
