"""
/modes — the registered mode catalog.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from ...api.schemas import CanHandleOut, CanHandleRequest, ModeOut
from ...modes.base import ModeContext

router = APIRouter(prefix="/modes", tags=["modes"])


def _get_engine(request: Request):
    return request.app.state.engine


def _mode_out(mode, engine) -> ModeOut:
    c = mode.config
    return ModeOut(
        id=c.id,
        name=c.name,
        category=c.category,
        description=c.description,
        keywords=list(c.keywords),
        triggers=list(c.triggers),
        priority=c.priority,
        timeout_ms=c.timeout_ms,
        min_input_length=c.min_input_length,
        max_input_length=c.max_input_length,
        required_context=list(c.required_context),
        max_concurrent_sessions=c.max_concurrent_sessions,
        active_sessions=engine.registry.active_sessions(c.id),
    )


@router.get("", response_model=List[ModeOut])
def list_modes(
    category: Optional[str] = Query(default=None),
    engine=Depends(_get_engine),
):
    """Modes in registration order (the recognition tie-break order)."""
    return [
        _mode_out(m, engine)
        for m in engine.registry
        if category is None or m.config.category == category
    ]


@router.get("/{mode_id}", response_model=ModeOut)
def get_mode(mode_id: str, engine=Depends(_get_engine)):
    return _mode_out(engine.registry.get(mode_id), engine)


@router.post("/can-handle", response_model=List[CanHandleOut])
def can_handle(body: CanHandleRequest, engine=Depends(_get_engine)):
    """Each mode's own assessment of the input, most confident first."""
    ctx = ModeContext(session_id="probe", user_id="anonymous", input=body.input, metadata=body.metadata)
    if body.mode_id:
        r = engine.registry.can_handle(body.mode_id, body.input, ctx)
        return [CanHandleOut(mode_id=body.mode_id, confidence=r.confidence, reasoning=r.reasoning)]
    return [
        CanHandleOut(mode_id=mid, confidence=r.confidence, reasoning=r.reasoning)
        for mid, r in engine.can_handle(body.input, ctx)
    ]
