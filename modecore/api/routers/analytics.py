"""
/analytics — per-user profiles derived from the history log.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from ...api.schemas import SessionSummaryOut, UserAnalyticsOut
from ...settings import get_settings

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _get_engine(request: Request):
    return request.app.state.engine


@router.get("/users/{user_id}", response_model=Optional[UserAnalyticsOut])
def user_analytics(user_id: str, engine=Depends(_get_engine)):
    """Returns null for a user with no recorded history."""
    analytics = engine.get_user_analytics(user_id)
    if analytics is None:
        return None
    return UserAnalyticsOut(**analytics.to_dict())


@router.get("/users/{user_id}/sessions", response_model=List[SessionSummaryOut])
def user_sessions(
    user_id: str,
    limit: int = Query(default=20, ge=1, le=500),
    engine=Depends(_get_engine),
):
    return [SessionSummaryOut(**s.to_dict()) for s in engine.get_user_sessions(user_id, limit)]


@router.get("/users/{user_id}/preferred-modes")
def preferred_modes(user_id: str, engine=Depends(_get_engine)):
    s = get_settings()
    return {
        "user_id": user_id,
        "preferred_modes": engine.preferred_modes(user_id),
        "window": s["preference_window"],
        "top_n": s["preference_top_n"],
    }


@router.post("/refresh")
def refresh(engine=Depends(_get_engine)):
    """Rebuild every summary from the current log (the periodic refresh, run now)."""
    count = engine.refresh_analytics()
    return {"entries": count, **engine.analytics.status()}
