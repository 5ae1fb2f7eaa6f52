"""
/history — query, export, import and clean up the mode history log.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from ...api.schemas import (
    CleanupOut,
    HistoryEntryOut,
    HistoryImportOut,
    HistoryImportRequest,
    ModeStatisticsOut,
    SessionSummaryOut,
)
from ...settings import get_settings

router = APIRouter(prefix="/history", tags=["history"])

_MEDIA_TYPES = {"structured": "application/json", "table": "text/csv"}


def _get_engine(request: Request):
    return request.app.state.engine


@router.get("", response_model=List[HistoryEntryOut])
def query_history(
    session_id: Optional[str] = Query(default=None),
    user_id: Optional[str] = Query(default=None),
    mode_id: Optional[str] = Query(default=None),
    action: Optional[str] = Query(default=None, description="activate | deactivate | transition"),
    from_date: Optional[float] = Query(default=None, description="Unix timestamp lower bound"),
    to_date: Optional[float] = Query(default=None, description="Unix timestamp upper bound"),
    limit: int = Query(default=100, ge=1, le=10_000),
    offset: int = Query(default=0, ge=0),
    engine=Depends(_get_engine),
):
    """Matching entries, newest first."""
    entries = engine.query_history(
        session_id=session_id,
        user_id=user_id,
        mode_id=mode_id,
        action=action,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        offset=offset,
    )
    return [HistoryEntryOut(**asdict(e)) for e in entries]


@router.get("/export")
def export_history(
    format: Optional[str] = Query(default=None, description="structured | table; defaults to user setting"),
    session_id: Optional[str] = Query(default=None),
    user_id: Optional[str] = Query(default=None),
    engine=Depends(_get_engine),
):
    filters = {k: v for k, v in (("session_id", session_id), ("user_id", user_id)) if v}
    fmt = format or get_settings()["export_format"]
    body = engine.export_history(fmt, **filters)
    return Response(content=body, media_type=_MEDIA_TYPES[fmt])


@router.post("/import", response_model=HistoryImportOut)
def import_history(body: HistoryImportRequest, engine=Depends(_get_engine)):
    try:
        added = engine.import_history(body.data, body.format)
    except (ValueError, KeyError, TypeError) as exc:
        # json.JSONDecodeError is a ValueError
        raise HTTPException(status_code=400, detail=f"Malformed history data: {exc}") from exc
    return HistoryImportOut(imported=added, total_entries=len(engine.history))


@router.post("/cleanup", response_model=CleanupOut)
def cleanup_history(
    now: Optional[float] = Query(default=None, description="Reference time; defaults to now"),
    engine=Depends(_get_engine),
):
    removed = engine.cleanup_history(now)
    return CleanupOut(
        removed_count=removed,
        remaining=len(engine.history),
        retention_days=engine.history.retention_days,
    )


@router.get("/sessions/{session_id}/summary", response_model=SessionSummaryOut)
def session_summary(session_id: str, engine=Depends(_get_engine)):
    summary = engine.get_session_summary(session_id)
    if summary is None:
        raise HTTPException(status_code=404, detail=f"No history for session '{session_id}'")
    return SessionSummaryOut(**summary.to_dict())


@router.get("/stats", response_model=Dict[str, ModeStatisticsOut])
def mode_stats(
    mode_id: Optional[str] = Query(default=None),
    since: Optional[float] = Query(default=None, description="Unix timestamp lower bound"),
    until: Optional[float] = Query(default=None, description="Unix timestamp upper bound"),
    engine=Depends(_get_engine),
):
    """Per-mode usage: counts, durations, confidence, usage by hour and weekday (UTC)."""
    stats = engine.mode_statistics(mode_id, since, until)
    return {mid: ModeStatisticsOut(**s.to_dict()) for mid, s in stats.items()}
