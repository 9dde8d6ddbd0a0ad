"""Tests for WebSocketSurface delivery and the connection manager."""

import asyncio

import pytest

from askbridge.api.websocket.manager import ConnectionManager
from askbridge.core.errors import SurfaceUnavailableError
from askbridge.core.events import SystemEvent
from askbridge.core.surface import WebSocketSurface


class FakeSocket:
    """Accepts the connection and records sent payloads; sends fail once `broken` is set."""

    def __init__(self, broken: bool = False) -> None:
        self.broken = broken
        self.sent: list[dict] = []
        self.accepted = False

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        pass

    async def send_json(self, data: dict) -> None:
        if self.broken:
            raise RuntimeError("socket is gone")
        self.sent.append(data)


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_pump_sends_in_post_order():
    ws = FakeSocket()
    surface = WebSocketSurface(ws)
    task = asyncio.create_task(surface.pump())
    surface.post(SystemEvent(text="one"))
    surface.post(SystemEvent(text="two"))
    await settle()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert [m["text"] for m in ws.sent] == ["one", "two"]
    assert surface.closed is False


@pytest.mark.asyncio
async def test_failed_send_closes_surface():
    closed_with = []
    surface = WebSocketSurface(FakeSocket(broken=True), on_closed=closed_with.append)
    surface.post(SystemEvent(text="lost"))
    surface.post(SystemEvent(text="also lost"))

    await asyncio.wait_for(surface.pump(), timeout=1)

    assert surface.closed is True
    assert closed_with == [surface]
    assert surface.pending == 0

    surface.post(SystemEvent(text="after close"))
    assert surface.pending == 0


@pytest.mark.asyncio
async def test_close_callback_runs_once():
    calls = []
    surface = WebSocketSurface(FakeSocket(), on_closed=calls.append)
    surface.close()
    surface.close()
    assert calls == [surface]


@pytest.mark.asyncio
async def test_broken_connection_is_detached_from_broker(make_broker):
    broker = make_broker()
    manager = ConnectionManager()
    ws = FakeSocket(broken=True)

    surface = await manager.connect(ws, broker)
    assert ws.accepted
    broker.signal_ready()
    await settle()

    assert surface.closed is True
    assert manager.owns(surface) is False
    assert broker.surface_ready is False
    with pytest.raises(SurfaceUnavailableError):
        broker.ask("Still there?")


@pytest.mark.asyncio
async def test_replaced_connection_closing_leaves_new_one_attached(make_broker):
    broker = make_broker()
    manager = ConnectionManager()

    old = await manager.connect(FakeSocket(), broker)
    new_ws = FakeSocket()
    new = await manager.connect(new_ws, broker)
    old.close()

    assert manager.owns(new) is True
    broker.signal_ready()
    await settle()
    assert broker.surface_ready is True
    assert new_ws.sent
    manager.disconnect(new, broker)
    await settle()
