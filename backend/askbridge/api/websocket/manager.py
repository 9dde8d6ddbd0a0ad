"""
WebSocket connection holder for askbridge.

Exactly one UI surface is attached at a time: a newer connection replaces
the previous one, which is closed. Each connection gets a WebSocketSurface
and a pump task that sends its events in order. A surface whose send fails
closes itself and is detached from the broker right away.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ...core.surface import WebSocketSurface

if TYPE_CHECKING:
    from fastapi import WebSocket

    from ...core.broker import RequestBroker

log = logging.getLogger("askbridge.server")


class ConnectionManager:
    def __init__(self) -> None:
        self._surface: WebSocketSurface | None = None
        self._ws: "WebSocket | None" = None
        self._pump_task: asyncio.Task | None = None

    async def connect(self, ws: "WebSocket", broker: "RequestBroker") -> WebSocketSurface:
        await ws.accept()
        previous = self._ws
        self._stop_pump()

        surface = WebSocketSurface(ws, on_closed=lambda s: self.disconnect(s, broker))
        self._surface = surface
        self._ws = ws
        self._pump_task = asyncio.create_task(surface.pump())
        broker.attach_surface(surface)
        log.info("WS connected  replaced=%s", previous is not None)

        if previous is not None:
            try:
                await previous.close(code=1000, reason="Replaced by a newer connection")
            except Exception as e:
                log.debug("Closing replaced WS failed  error=%s", e)
        return surface

    def disconnect(self, surface: WebSocketSurface, broker: "RequestBroker") -> None:
        """Detach `surface` unless a newer connection already replaced it."""
        if surface is not self._surface:
            return
        broker.detach_surface(surface)
        self._stop_pump()
        self._surface = None
        self._ws = None
        log.info("WS disconnected")

    def owns(self, surface: WebSocketSurface) -> bool:
        return surface is self._surface

    def _stop_pump(self) -> None:
        if self._pump_task is not None and not self._pump_task.done():
            self._pump_task.cancel()
        self._pump_task = None
