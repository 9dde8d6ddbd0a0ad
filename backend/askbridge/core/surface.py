"""
UiSurface ABC and RecordingSurface for testing.

A surface is the one UI panel the broker talks to. post() is fire-and-forget
and synchronous so broker state changes never await; implementations
deliver events in the order they were posted.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from fastapi import WebSocket

    from .events import Event

log = logging.getLogger("askbridge.surface")


class UiSurface(ABC):
    """Abstract base for UI surfaces."""

    @abstractmethod
    def post(self, event: "Event") -> None: ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class WebSocketSurface(UiSurface):
    """Surface backed by a FastAPI WebSocket. Events are sent by pump() in post order.

    The first failed send closes the surface: queued events are dropped, later
    posts are ignored and `on_closed` is called once so the owner can detach it.
    """

    def __init__(
        self,
        ws: "WebSocket",
        on_closed: "Callable[[WebSocketSurface], None] | None" = None,
    ) -> None:
        self._ws = ws
        self._outbox: asyncio.Queue["Event"] = asyncio.Queue()
        self._on_closed = on_closed
        self._closed = False

    def post(self, event: "Event") -> None:
        if self._closed:
            return
        self._outbox.put_nowait(event)

    async def pump(self) -> None:
        """Runs until cancelled or a send fails. Start once per connection as a background task."""
        while not self._closed:
            event = await self._outbox.get()
            try:
                await self._ws.send_json(event.model_dump(mode="json"))
            except Exception as e:
                log.info("WS send failed, closing surface  type=%s error=%s", event.type, e)
                self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        dropped = self._outbox.qsize()
        while not self._outbox.empty():
            self._outbox.get_nowait()
        if dropped:
            log.debug("Dropped queued events  count=%d", dropped)
        if self._on_closed is not None:
            self._on_closed(self)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._outbox.qsize()


class RecordingSurface(UiSurface):
    """Records posted events for tests. No I/O."""

    def __init__(self) -> None:
        self.events: list["Event"] = []

    def post(self, event: "Event") -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> "list[Event]":
        return [e for e in self.events if e.type == event_type]

    def clear(self) -> None:
        self.events.clear()
