"""Tests for the agent-facing ask_user tool."""

import asyncio

import pytest

from askbridge.core.models import Attachment
from askbridge.tools.interaction import ask_user


def attach(broker, surface) -> None:
    broker.attach_surface(surface)
    broker.signal_ready()


async def wait_pending(broker) -> str:
    while broker.current_request_id is None:
        await asyncio.sleep(0)
    return broker.current_request_id


@pytest.mark.asyncio
async def test_queued_answer(make_broker):
    broker = make_broker()
    broker.add_queue_prompt("yes")
    result = await ask_user(broker, "Proceed?")
    assert result.response == "yes"
    assert result.attachments == []


@pytest.mark.asyncio
async def test_human_answer_with_attachments(make_broker, surface):
    broker = make_broker()
    attach(broker, surface)

    task = asyncio.create_task(ask_user(broker, "Which file?"))
    request_id = await wait_pending(broker)
    broker.submit(
        "this one",
        [Attachment(id="a1", name="notes.md", uri="file:///tmp/notes.md")],
        request_id=request_id,
    )
    result = await task
    assert result.response == "this one"
    assert result.attachments == ["file:///tmp/notes.md"]


@pytest.mark.asyncio
async def test_no_surface_returns_empty_response(make_broker):
    result = await ask_user(make_broker(), "Proceed?")
    assert result.response == ""


@pytest.mark.asyncio
async def test_request_already_pending_returns_empty_response(make_broker, surface):
    broker = make_broker()
    attach(broker, surface)
    first = broker.ask("a?")
    result = await ask_user(broker, "b?")
    assert result.response == ""
    assert not first.done()


@pytest.mark.asyncio
async def test_timeout_abandons_request(make_broker, surface):
    broker = make_broker()
    attach(broker, surface)
    result = await ask_user(broker, "Proceed?", timeout=0.05)
    assert result.response == ""
    assert broker.current_request_id is None
    assert broker.current_session() == []


@pytest.mark.asyncio
async def test_configured_timeout_used_by_default(make_broker, surface):
    broker = make_broker(ask_timeout=0.05)
    attach(broker, surface)
    result = await ask_user(broker, "Proceed?")
    assert result.response == ""
    assert broker.current_request_id is None
