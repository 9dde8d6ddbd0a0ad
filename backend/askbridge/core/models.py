"""
Pure Pydantic data models for askbridge.

No logic, no I/O. These are the serializable data layer:
- Saved to disk (queue-state and exchange-history documents)
- Sent over WebSocket to the UI surface
- Returned to the agent from ask_user()
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class QueuedPrompt(BaseModel):
    """A pre-staged answer waiting to be consumed by the next question."""
    id: str
    prompt: str                       # trimmed, non-empty
    created_at: datetime


class Attachment(BaseModel):
    """Opaque reference passed through from the UI. Never interpreted here."""
    id: str
    name: str
    uri: str
    is_temporary: bool = False        # pasted image saved to temp storage
    is_folder: bool = False
    is_text_reference: bool = False   # inserted via #-autocomplete


class ToolCallEntry(BaseModel):
    """One question/answer exchange between the agent and the human."""
    id: str                           # correlation id, e.g. "tc_3f2a9c1d0b7e"
    prompt: str                       # the agent's question
    response: str = ""                # empty while pending
    timestamp: datetime
    from_queue: bool = False          # True when answered by autopilot
    status: Literal["pending", "completed"] = "pending"
    session_id: str


class UserResponse(BaseModel):
    """What a resolved ask() Future carries."""
    value: str
    attachments: list[Attachment] = []
    from_queue: bool = False


class AskUserResult(BaseModel):
    """Agent-facing result of ask_user(). Attachments are URIs only."""
    response: str
    attachments: list[str] = []


# ── Question hints (classifier output) ───────────────────────────────────────


class ParsedChoice(BaseModel):
    """One selectable answer detected in a question."""
    label: str                        # cleaned display text, e.g. "Red"
    value: str                        # token sent back verbatim, e.g. "1", "B", "Option A"
    short_label: str | None = None    # button caption


class ApprovalHint(BaseModel):
    """Yes/no question; the UI shows approve/reject buttons."""
    kind: Literal["approval"] = "approval"


class ChoicesHint(BaseModel):
    """Multiple-choice question; the UI shows one button per choice."""
    kind: Literal["choices"] = "choices"
    choices: list[ParsedChoice]


class OpenEndedHint(BaseModel):
    """Free-text answer expected."""
    kind: Literal["open_ended"] = "open_ended"


QuestionHint = Annotated[
    Union[ApprovalHint, ChoicesHint, OpenEndedHint],
    Field(discriminator="kind"),
]


# ── Persisted documents ──────────────────────────────────────────────────────


class QueueDocument(BaseModel):
    """On-disk format of the queue-state document."""
    model_config = ConfigDict(extra="forbid")

    queue: list[QueuedPrompt]
    enabled: bool


class HistoryDocument(BaseModel):
    """On-disk format of the exchange-history document (completed entries only)."""
    model_config = ConfigDict(extra="forbid")

    history: list[ToolCallEntry]
