"""
/sessions — live mode sessions.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, Request

from ...api.schemas import ModeResultOut, ProcessRequest, SessionOut, TransitionRequest

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _get_engine(request: Request):
    return request.app.state.engine


def _session_out(session, engine) -> SessionOut:
    return SessionOut(
        session_id=session.session_id,
        user_id=session.user_id,
        state=session.state.value,
        current_mode=session.current_mode,
        activated_at=session.activated_at,
        transition_count=session.transition_count,
        created_at=session.created_at,
        last_activity=session.last_activity,
        indicator=engine.indicator.render(session.session_id),
    )


@router.get("", response_model=List[SessionOut])
def list_sessions(engine=Depends(_get_engine)):
    return [_session_out(s, engine) for s in engine.sessions.sessions()]


@router.get("/{session_id}", response_model=SessionOut)
def get_session(session_id: str, engine=Depends(_get_engine)):
    return _session_out(engine.sessions.get(session_id), engine)


@router.post("/{session_id}/process", response_model=ModeResultOut)
async def process(session_id: str, body: ProcessRequest, engine=Depends(_get_engine)):
    """Run input through the session's current mode without re-recognizing."""
    r = await engine.process(session_id, body.input, body.metadata)
    return ModeResultOut(
        success=r.success,
        output=r.output,
        confidence=r.confidence,
        suggested_next_mode=r.suggested_next_mode,
        metadata=r.metadata,
        duration_ms=r.duration_ms,
    )


@router.post("/{session_id}/transition", response_model=SessionOut)
async def transition(session_id: str, body: TransitionRequest, engine=Depends(_get_engine)):
    """Switch the session to a mode directly; creates the session if needed."""
    session = await engine.transition(session_id, body.mode_id, user_id=body.user_id, reason=body.reason)
    return _session_out(session, engine)


@router.delete("/{session_id}", response_model=SessionOut)
async def close_session(
    session_id: str,
    reason: str = Query(default="closed"),
    engine=Depends(_get_engine),
):
    """Close the session; its final history entry is recorded before this returns."""
    session = await engine.close_session(session_id, reason)
    return _session_out(session, engine)
