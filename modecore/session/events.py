"""
Transition events and the channel that fans them out.

Every state-machine step produces exactly one TransitionEvent. The channel
gives each subscriber its own queue, drained by its own task, so a slow or
failing consumer (history, display) never holds up another one or the
session that published the event.

Before start() is called the channel delivers inline, which keeps unit tests
free of background tasks.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Union

logger = logging.getLogger(__name__)


class TransitionAction(str, Enum):
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    TRANSITION = "transition"


@dataclass(frozen=True)
class TransitionEvent:
    session_id: str
    user_id: str
    action: TransitionAction
    mode_id: str
    category: str
    timestamp: float
    from_mode: Optional[str] = None
    duration: Optional[float] = None      # seconds spent in from_mode (or mode_id on deactivate)
    confidence: Optional[float] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["action"] = self.action.value
        return d


Handler = Callable[[TransitionEvent], Union[None, Awaitable[None]]]


class _Subscriber:
    def __init__(self, name: str, handler: Handler):
        self.name = name
        self.handler = handler
        self.queue: "asyncio.Queue[TransitionEvent]" = asyncio.Queue()
        self.task: Optional[asyncio.Task] = None


class EventChannel:

    def __init__(self):
        self._subscribers: List[_Subscriber] = []
        self._running = False
        self.published = 0

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(self, name: str, handler: Handler) -> None:
        sub = _Subscriber(name, handler)
        self._subscribers.append(sub)
        if self._running:
            sub.task = asyncio.create_task(self._consume(sub), name=f"events:{name}")

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for sub in self._subscribers:
            sub.task = asyncio.create_task(self._consume(sub), name=f"events:{sub.name}")

    async def stop(self) -> None:
        if not self._running:
            return
        await self.flush()
        self._running = False
        for sub in self._subscribers:
            if sub.task:
                sub.task.cancel()
        await asyncio.gather(*(s.task for s in self._subscribers if s.task), return_exceptions=True)
        for sub in self._subscribers:
            sub.task = None

    async def publish(self, event: TransitionEvent) -> None:
        self.published += 1
        if not self._running:
            for sub in self._subscribers:
                await _deliver(sub, event)
            return
        for sub in self._subscribers:
            sub.queue.put_nowait(event)

    async def flush(self) -> None:
        """Wait until every subscriber has handled every event published so far."""
        if self._running:
            await asyncio.gather(*(s.queue.join() for s in self._subscribers))

    async def _consume(self, sub: _Subscriber) -> None:
        while True:
            event = await sub.queue.get()
            try:
                await _deliver(sub, event)
            finally:
                sub.queue.task_done()

    def status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "published": self.published,
            "subscribers": {s.name: s.queue.qsize() for s in self._subscribers},
        }


async def _deliver(sub: _Subscriber, event: TransitionEvent) -> None:
    try:
        result = sub.handler(event)
        if inspect.isawaitable(result):
            await result
    except Exception:
        # consumers are eventually consistent; a failure is logged, never raised
        logger.exception("Event subscriber '%s' failed on %s", sub.name, event.action.value)
