"""Tests for core data models."""

from datetime import datetime, timezone

import pytest
from pydantic import TypeAdapter, ValidationError

from askbridge.core.events import PendingQuestionEvent, SystemEvent, UpdateQueueEvent
from askbridge.core.models import (
    ApprovalHint, AskUserResult, ChoicesHint, HistoryDocument, OpenEndedHint,
    ParsedChoice, QueueDocument, QueuedPrompt, QuestionHint, ToolCallEntry, UserResponse,
)


def make_entry(**kwargs) -> ToolCallEntry:
    defaults = dict(
        id="tc_test",
        prompt="Proceed?",
        timestamp=datetime.now(timezone.utc),
        session_id="session_test",
    )
    defaults.update(kwargs)
    return ToolCallEntry(**defaults)


def test_tool_call_entry_defaults():
    entry = make_entry()
    assert entry.status == "pending"
    assert entry.response == ""
    assert entry.from_queue is False


def test_user_response_defaults():
    r = UserResponse(value="yes")
    assert r.attachments == []
    assert r.from_queue is False


def test_ask_user_result_defaults():
    r = AskUserResult(response="")
    assert r.attachments == []


def test_question_hint_discriminates_on_kind():
    adapter = TypeAdapter(QuestionHint)
    assert isinstance(adapter.validate_python({"kind": "approval"}), ApprovalHint)
    assert isinstance(adapter.validate_python({"kind": "open_ended"}), OpenEndedHint)
    hint = adapter.validate_python({"kind": "choices", "choices": [{"label": "Red", "value": "1"}]})
    assert isinstance(hint, ChoicesHint)
    assert hint.choices[0].short_label is None
    with pytest.raises(ValidationError):
        adapter.validate_python({"kind": "maybe"})


def test_queue_document_requires_both_fields():
    with pytest.raises(ValidationError):
        QueueDocument.model_validate({"queue": []})
    with pytest.raises(ValidationError):
        QueueDocument.model_validate({"queue": [], "enabled": True, "version": 2})


def test_history_document_roundtrip_json():
    doc = HistoryDocument(history=[make_entry(status="completed", response="yes")])
    doc2 = HistoryDocument.model_validate_json(doc.model_dump_json())
    assert doc2.history[0].id == "tc_test"
    assert doc2.history[0].response == "yes"


def test_pending_question_event_json():
    event = PendingQuestionEvent(
        id="tc_1",
        prompt="1. Red\n2. Blue",
        hint=ChoicesHint(choices=[ParsedChoice(label="Red", value="1"), ParsedChoice(label="Blue", value="2")]),
    )
    data = event.model_dump(mode="json")
    assert data["type"] == "pending_question"
    assert data["hint"]["kind"] == "choices"
    assert [c["value"] for c in data["hint"]["choices"]] == ["1", "2"]


def test_update_queue_event_json():
    now = datetime.now(timezone.utc)
    event = UpdateQueueEvent(queue=[QueuedPrompt(id="q_1", prompt="yes", created_at=now)], enabled=False)
    data = event.model_dump(mode="json")
    assert data == {
        "type": "update_queue",
        "queue": [{"id": "q_1", "prompt": "yes", "created_at": data["queue"][0]["created_at"]}],
        "enabled": False,
    }


def test_system_event_default_level():
    assert SystemEvent(text="pong").level == "info"
