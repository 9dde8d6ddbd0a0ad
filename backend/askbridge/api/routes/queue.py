"""Read-only view of the prompt queue. Mutations arrive over the WebSocket."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/queue")
async def get_queue(request: Request):
    broker = request.app.state.broker
    return {
        "enabled": broker.queue_enabled,
        "queue": [p.model_dump(mode="json") for p in broker.queue_items],
    }
