"""
FastAPI application — local cognitive mode engine API.
Runs on http://127.0.0.1:8765 by default.

The ModeEngine lives on app.state so that each call to create_app() produces
a fully independent instance with no shared module-level globals. This makes
test isolation straightforward.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import config
from ..errors import (
    CapacityExceededError,
    InvalidModeReferenceError,
    ModeEngineError,
    SessionNotFoundError,
    UnsupportedFormatError,
)
from ..service import ModeEngine

_STATUS_CODES = {
    InvalidModeReferenceError: 404,
    SessionNotFoundError: 404,
    CapacityExceededError: 409,
    UnsupportedFormatError: 400,
}


# ---------------------------------------------------------------------------
# Lifespan: initialises and tears down all per-app state
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = ModeEngine(config)
    await engine.start()
    app.state.engine = engine

    yield

    await engine.shutdown()


async def _engine_error(request: Request, exc: ModeEngineError) -> JSONResponse:
    status = _STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="Cognitive Mode Engine",
        description="Local recognition, mode session and history API",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000", "null"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ModeEngineError, _engine_error)

    from .routers import analytics, history, modes, recognize, sessions, settings

    app.include_router(recognize.router)
    app.include_router(sessions.router)
    app.include_router(history.router)
    app.include_router(analytics.router)
    app.include_router(modes.router)
    app.include_router(settings.router)

    @app.get("/health")
    def health(request: Request):
        engine = getattr(request.app.state, "engine", None)
        if engine is None:
            return {"status": "starting", "version": "0.1.0"}
        return {
            "status": "ok",
            "version": "0.1.0",
            "modes": len(engine.registry),
            "live_sessions": len(engine.sessions),
            "history_entries": len(engine.history),
        }

    return app


app = create_app()
