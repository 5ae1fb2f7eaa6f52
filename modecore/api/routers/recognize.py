"""
/recognize and /interact — classify input, optionally driving a session.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ...api.schemas import InteractOut, ModeResultOut, RecognitionOut, RecognizeRequest
from ...recognition.context import SessionTelemetry

router = APIRouter(tags=["recognition"])


def _get_engine(request: Request):
    return request.app.state.engine


@router.post("/recognize", response_model=RecognitionOut)
def recognize(body: RecognizeRequest, engine=Depends(_get_engine)):
    """Recommend a mode for the input without touching any session."""
    result = engine.recognize(body.input, SessionTelemetry(**body.telemetry.model_dump()))
    return RecognitionOut(**result.to_dict())


@router.post("/interact", response_model=InteractOut)
async def interact(body: RecognizeRequest, engine=Depends(_get_engine)):
    """Recognize, move the session to the recommended mode and process the input there."""
    telemetry = SessionTelemetry(**body.telemetry.model_dump())
    outcome = await engine.handle(body.input, telemetry)
    r = outcome.result
    return InteractOut(
        session_id=outcome.session_id,
        recognition=RecognitionOut(**outcome.recognition.to_dict()),
        result=ModeResultOut(
            success=r.success,
            output=r.output,
            confidence=r.confidence,
            suggested_next_mode=r.suggested_next_mode,
            metadata=r.metadata,
            duration_ms=r.duration_ms,
        ),
        current_mode=outcome.current_mode,
        previous_mode=outcome.previous_mode,
        switched=outcome.switched,
        indicator=engine.indicator.render(outcome.session_id),
    )
