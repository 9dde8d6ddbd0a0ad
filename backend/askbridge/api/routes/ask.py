"""Agent-facing ask route."""

from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from ...tools.interaction import ask_user

router = APIRouter()


class AskBody(BaseModel):
    question: str = Field(min_length=1)
    timeout: float | None = Field(default=None, gt=0)


@router.post("/ask")
async def ask(body: AskBody, request: Request):
    """Blocks until the human (or the queue) answers. Never fails: errors yield an empty response."""
    broker = request.app.state.broker
    result = await ask_user(broker, body.question, timeout=body.timeout)
    return result.model_dump(mode="json")
