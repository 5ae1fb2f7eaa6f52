"""
Tests for the settings store (modecore/settings.py) and the /settings API endpoints.
The settings file is redirected to a temp path by the tmp_settings_file fixture
in conftest.py.
"""

from __future__ import annotations

import json

import pytest

import modecore.settings as settings_mod
from modecore.settings import DEFAULTS, get_settings, update_settings


# ── Unit tests: settings store ────────────────────────────────────────────────

class TestSettingsDefaults:
    def test_get_settings_returns_all_defaults(self, tmp_settings_file):
        s = get_settings()
        for key, val in DEFAULTS.items():
            assert key in s
            assert s[key] == val

    def test_get_settings_returns_copy(self, tmp_settings_file):
        s1 = get_settings()
        s1["preference_window"] = 9999
        s2 = get_settings()
        assert s2["preference_window"] == DEFAULTS["preference_window"]

    def test_defaults_contain_expected_keys(self):
        expected = {
            "preference_window",
            "preference_top_n",
            "session_idle_minutes",
            "export_format",
        }
        assert set(DEFAULTS.keys()) == expected


class TestUpdateSettings:
    def test_update_single_key(self, tmp_settings_file):
        update_settings({"preference_top_n": 5})
        assert get_settings()["preference_top_n"] == 5

    def test_update_persists_to_disk(self, tmp_settings_file):
        update_settings({"session_idle_minutes": 15})
        saved = json.loads(tmp_settings_file.read_text())
        assert saved["session_idle_minutes"] == 15

    def test_unknown_keys_are_ignored(self, tmp_settings_file):
        update_settings({"unknown_key": "surprise", "preference_window": 20})
        s = get_settings()
        assert "unknown_key" not in s
        assert s["preference_window"] == 20

    def test_update_coerces_type(self, tmp_settings_file):
        # Pass a float where int is expected, should coerce
        update_settings({"preference_window": 12.9})
        assert isinstance(get_settings()["preference_window"], int)
        assert get_settings()["preference_window"] == 12

    def test_partial_update_preserves_other_keys(self, tmp_settings_file):
        update_settings({"export_format": "table"})
        s = get_settings()
        assert s["export_format"] == "table"
        assert s["preference_top_n"] == DEFAULTS["preference_top_n"]

    def test_load_from_existing_file(self, tmp_settings_file):
        # Pre-populate the file before any get_settings() call
        tmp_settings_file.write_text(json.dumps({"session_idle_minutes": 45}))
        settings_mod._current.clear()
        s = get_settings()
        assert s["session_idle_minutes"] == 45
        # Keys not in file fall back to defaults
        assert s["export_format"] == DEFAULTS["export_format"]

    def test_malformed_file_falls_back_to_defaults(self, tmp_settings_file):
        tmp_settings_file.write_text("not valid json{{")
        settings_mod._current.clear()
        s = get_settings()
        for key, val in DEFAULTS.items():
            assert s[key] == val


# ── API integration tests: GET /settings ─────────────────────────────────────

class TestSettingsGetEndpoint:
    async def test_get_settings_response_shape(self, client):
        r = await client.get("/settings")
        assert r.status_code == 200
        body = r.json()
        assert set(body) == {"settings", "defaults"}
        for key, val in DEFAULTS.items():
            assert body["defaults"][key] == val
            assert key in body["settings"]


# ── API integration tests: PUT /settings ─────────────────────────────────────

class TestSettingsPutEndpoint:
    async def test_put_updates_multiple_keys(self, client):
        r = await client.put("/settings", json={"preference_window": 25, "preference_top_n": 2})
        assert r.status_code == 200
        s = r.json()["settings"]
        assert s["preference_window"] == 25
        assert s["preference_top_n"] == 2

    async def test_put_partial_patch_preserves_other_keys(self, client):
        await client.put("/settings", json={"session_idle_minutes": 8})
        r = await client.put("/settings", json={"export_format": "table"})
        assert r.json()["settings"]["session_idle_minutes"] == 8

    async def test_put_empty_body_returns_200(self, client):
        """Empty patch is valid — a no-op."""
        r = await client.put("/settings", json={})
        assert r.status_code == 200

    @pytest.mark.parametrize("patch", [
        {"preference_window": 0},
        {"preference_window": 101},
        {"preference_top_n": 11},
        {"session_idle_minutes": 0},
        {"session_idle_minutes": 2000},
        {"export_format": "xml"},
    ])
    async def test_put_out_of_range_returns_422(self, client, patch):
        r = await client.put("/settings", json=patch)
        assert r.status_code == 422

    async def test_get_reflects_put(self, client):
        """A value written via PUT should be visible in a subsequent GET."""
        await client.put("/settings", json={"session_idle_minutes": 12})
        r = await client.get("/settings")
        assert r.json()["settings"]["session_idle_minutes"] == 12
