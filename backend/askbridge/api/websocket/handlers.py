"""
WebSocket endpoint and message loop for askbridge.

Endpoint: WS /ws

Incoming message types (UI -> server):
  {"type": "ready"}
  {"type": "submit", "value": "...", "request_id": "tc_...", "attachments": [...]}
  {"type": "add_queue_prompt", "prompt": "...", "id": "q_..."}
  {"type": "remove_queue_prompt", "id": "q_..."}
  {"type": "edit_queue_prompt", "id": "q_...", "prompt": "..."}
  {"type": "reorder_queue", "from_index": 0, "to_index": 2}
  {"type": "toggle_queue", "enabled": true}
  {"type": "clear_queue"}
  {"type": "remove_history_item", "id": "tc_..."}
  {"type": "clear_persisted_history"}
  {"type": "open_history"}
  {"type": "ping"}

Outgoing event types (server -> UI): see core/events.py.
  {"type": "system", "text": "...", "level": "..."}   <- pong, keepalive, warnings
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ...core.errors import QueueValidationError, StaleRequestError
from ...core.events import SystemEvent
from ...core.models import Attachment

if TYPE_CHECKING:
    from ...core.broker import RequestBroker
    from ...core.surface import UiSurface

router = APIRouter()
log = logging.getLogger("askbridge.server")

KEEPALIVE_SECONDS = 30.0


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    broker = ws.app.state.broker
    manager = ws.app.state.connections
    surface = await manager.connect(ws, broker)

    try:
        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_json(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                if not manager.owns(surface):
                    break
                surface.post(SystemEvent(text="keepalive"))
                continue
            if not manager.owns(surface):
                log.debug("Dropped message from replaced WS")
                break
            if not isinstance(msg, dict):
                log.debug("Ignored non-object WS message")
                continue
            dispatch(broker, surface, msg)

    except WebSocketDisconnect:
        log.debug("WS client disconnected")
    except Exception as e:
        log.error("WS error  error=%s", e, exc_info=True)
    finally:
        manager.disconnect(surface, broker)


def dispatch(broker: "RequestBroker", surface: "UiSurface", msg: dict[str, Any]) -> None:
    """Apply one inbound message. Rejected input is reported back as a warning."""
    msg_type = msg.get("type")
    handler = _HANDLERS.get(msg_type)
    if handler is None:
        log.debug("Unknown WS message type: %s", msg_type)
        return
    try:
        handler(broker, surface, msg)
    except (QueueValidationError, StaleRequestError, ValidationError) as e:
        log.warning("Rejected  type=%s error=%s", msg_type, e)
        surface.post(SystemEvent(text=str(e), level="warning"))


# ── Handlers ──────────────────────────────────────────────────────────────────


def _submit(broker: "RequestBroker", surface: "UiSurface", msg: dict) -> None:
    attachments = [Attachment.model_validate(a) for a in msg.get("attachments") or []]
    value = msg.get("value", "")
    if not isinstance(value, str):
        value = str(value)
    broker.submit(value, attachments, request_id=msg.get("request_id"))


def _ready(broker: "RequestBroker", surface: "UiSurface", msg: dict) -> None:
    broker.signal_ready()


def _ping(broker: "RequestBroker", surface: "UiSurface", msg: dict) -> None:
    surface.post(SystemEvent(text="pong"))


_HANDLERS: dict[str, Callable[["RequestBroker", "UiSurface", dict], None]] = {
    "ready": _ready,
    "submit": _submit,
    "add_queue_prompt": lambda b, s, m: b.add_queue_prompt(m.get("prompt"), prompt_id=m.get("id")),
    "remove_queue_prompt": lambda b, s, m: b.remove_queue_prompt(m.get("id", "")),
    "edit_queue_prompt": lambda b, s, m: b.edit_queue_prompt(m.get("id", ""), m.get("prompt")),
    "reorder_queue": lambda b, s, m: b.reorder_queue(m.get("from_index"), m.get("to_index")),
    "toggle_queue": lambda b, s, m: b.toggle_queue(m.get("enabled")),
    "clear_queue": lambda b, s, m: b.clear_queue(),
    "remove_history_item": lambda b, s, m: b.remove_history_item(m.get("id", "")),
    "clear_persisted_history": lambda b, s, m: b.clear_persisted_history(),
    "open_history": lambda b, s, m: b.open_history(),
    "ping": _ping,
}
