"""
Central configuration for the cognitive mode engine.
All values can be overridden via environment variables or a local config.json.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

_ROOT = Path(__file__).parent.parent
_CONFIG_FILE = _ROOT / "config.json"

_TRUE_STRINGS = {"1", "true", "yes", "on"}


@dataclass
class Config:
    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8765
    log_level: str = "info"

    # Recognition
    default_mode: str = "thinking"

    # History
    history_max_entries: int = 10_000        # in-memory cap, oldest evicted first
    retention_days: int = 90
    persist_history: bool = False            # mirror the log into SQLite

    # Background timers
    cleanup_interval_s: int = 86_400         # retention cleanup (24h)
    analytics_refresh_interval_s: int = 300  # full analytics rebuild (5 min)
    idle_sweep_interval_s: int = 60          # inactive-session expiry check

    # Sessions
    session_idle_timeout_s: int = 1800

    # Storage
    data_dir: Path = field(default_factory=lambda: _ROOT / "data")
    history_db: str = "history.db"

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)

    @property
    def history_db_path(self) -> Path:
        return self.data_dir / self.history_db

    @classmethod
    def load(cls) -> "Config":
        cfg = cls()
        if _CONFIG_FILE.exists():
            overrides = json.loads(_CONFIG_FILE.read_text())
            for k, v in overrides.items():
                if hasattr(cfg, k):
                    setattr(cfg, k, v)
        # environment variable overrides (CME_*)
        for k in cfg.__dataclass_fields__:  # type: ignore[attr-defined]
            env_key = f"CME_{k.upper()}"
            if env_key in os.environ:
                setattr(cfg, k, _coerce(getattr(cfg, k), os.environ[env_key]))
        cfg.data_dir = Path(cfg.data_dir)
        return cfg


def _coerce(current, raw: str):
    # bool("false") is True, so booleans need their own parsing
    if isinstance(current, bool):
        return raw.strip().lower() in _TRUE_STRINGS
    return type(current)(raw)


# Module-level default; the engine itself takes a Config explicitly
config = Config.load()
