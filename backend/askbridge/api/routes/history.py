"""Read-only views of the current session and the persisted history."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/history")
async def get_history(request: Request):
    broker = request.app.state.broker
    return {
        "session_id": broker.session_id,
        "pending_id": broker.current_request_id,
        "current": [e.model_dump(mode="json") for e in broker.current_session()],
        "persisted": [e.model_dump(mode="json") for e in broker.persisted_history()],
    }
