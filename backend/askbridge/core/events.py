"""
Outbound notification protocol for askbridge.

The broker posts these to the attached UI surface; the WebSocket surface
sends them as JSON via model_dump(mode="json"). Every event carries a
literal `type` the frontend switches on.

State events (update_queue, current_session_updated, persisted_history_updated)
always carry the full state, so a surface that missed some can be brought up
to date by re-sending them on `ready`.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel

from .models import QuestionHint, QueuedPrompt, ToolCallEntry


class UpdateQueueEvent(BaseModel):
    type: Literal["update_queue"] = "update_queue"
    queue: list[QueuedPrompt]
    enabled: bool


class PendingQuestionEvent(BaseModel):
    """A question awaiting a human answer. Buffered by the gate until ready."""
    type: Literal["pending_question"] = "pending_question"
    id: str
    prompt: str
    hint: QuestionHint


class ExchangeCompletedEvent(BaseModel):
    type: Literal["exchange_completed"] = "exchange_completed"
    entry: ToolCallEntry


class CurrentSessionEvent(BaseModel):
    """Chat feed: every entry of this session, most recent first, pending included."""
    type: Literal["current_session_updated"] = "current_session_updated"
    history: list[ToolCallEntry]


class PersistedHistoryEvent(BaseModel):
    """Review surface: completed entries of past sessions."""
    type: Literal["persisted_history_updated"] = "persisted_history_updated"
    history: list[ToolCallEntry]


class SystemEvent(BaseModel):
    """Server messages: warnings for rejected input, pong, keepalive."""
    type: Literal["system"] = "system"
    text: str
    level: Literal["info", "warning", "error"] = "info"


Event = Union[
    UpdateQueueEvent,
    PendingQuestionEvent,
    ExchangeCompletedEvent,
    CurrentSessionEvent,
    PersistedHistoryEvent,
    SystemEvent,
]
