"""
Shared pytest fixtures and configuration.
"""

import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import modecore.settings as settings_mod
from modecore.api.app import create_app
from modecore.modes.base import CanHandleResult, ModeConfig, ModeContext, ModeResult, assess
from modecore.modes.catalog import default_modes
from modecore.modes.registry import ModeRegistry


@pytest.fixture(autouse=True)
def tmp_settings_file(tmp_path, monkeypatch):
    """Point the settings store at a temp file so tests never touch data/."""
    fake = tmp_path / "settings.json"
    monkeypatch.setattr(settings_mod, "_FILE", fake)
    monkeypatch.setattr(settings_mod, "_current", {})
    return fake


@pytest.fixture
def app():
    """Create a fresh app instance per test."""
    return create_app()


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client wired directly to the ASGI app (no server needed)."""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac


@pytest.fixture
def registry():
    return ModeRegistry(default_modes())


class StubMode:
    """Configurable mode for exercising the registry and the session machine."""

    def __init__(
        self,
        id,
        keywords=(),
        triggers=(),
        category="stub",
        delay_s=0.0,
        fail_process=False,
        fail_activate=False,
        confidence=0.7,
        **config,
    ):
        self.config = ModeConfig(
            id=id,
            name=id.title(),
            category=category,
            keywords=tuple(keywords),
            triggers=tuple(triggers),
            **config,
        )
        self.delay_s = delay_s
        self.fail_process = fail_process
        self.fail_activate = fail_activate
        self.confidence = confidence
        self.activated = []
        self.deactivated = []

    async def on_activate(self, context: ModeContext) -> None:
        if self.fail_activate:
            raise RuntimeError("activation refused")
        self.activated.append(context.session_id)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.fail_process:
            raise ValueError("cannot process this")
        return ModeResult(success=True, output=f"{self.config.id}: {input}", confidence=self.confidence)

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        return assess(self.config, input, context)

    async def on_deactivate(self, session_id: str) -> None:
        self.deactivated.append(session_id)


@pytest.fixture
def stub_mode():
    """The StubMode class, for tests that build their own registry."""
    return StubMode
