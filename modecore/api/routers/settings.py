"""
/settings — read and update user-tunable runtime settings.
"""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ...settings import DEFAULTS, get_settings, update_settings

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingsPatch(BaseModel):
    preference_window:    Optional[int] = Field(None, ge=1, le=100)
    preference_top_n:     Optional[int] = Field(None, ge=1, le=10)
    session_idle_minutes: Optional[int] = Field(None, ge=1, le=1440)
    export_format:        Optional[Literal["structured", "table"]] = None


@router.get("")
def read_settings():
    """Return current settings with their defaults for reference."""
    current = get_settings()
    return {"settings": current, "defaults": DEFAULTS}


@router.put("")
def write_settings(patch: SettingsPatch):
    """Apply a partial update; unknown keys are ignored. Persists to data/settings.json."""
    data = {k: v for k, v in patch.model_dump().items() if v is not None}
    return {"settings": update_settings(data)}
