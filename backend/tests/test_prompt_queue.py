"""Tests for PromptQueue."""

import asyncio

import pytest

from askbridge.core.errors import QueueValidationError
from askbridge.core.models import QueueDocument
from askbridge.core.prompt_queue import PromptQueue
from askbridge.core.store import QUEUE_DOCUMENT, MemoryDocumentStore


def make_queue(store=None, **kwargs) -> PromptQueue:
    return PromptQueue(store or MemoryDocumentStore(), **kwargs)


def prompts(queue: PromptQueue) -> list[str]:
    return [p.prompt for p in queue.items]


def test_push_preserves_insertion_order():
    q = make_queue()
    for text in ["a", "b", "c"]:
        q.push(text)
    assert prompts(q) == ["a", "b", "c"]
    assert all(p.id.startswith("q_") for p in q.items)


def test_push_trims_and_accepts_client_id():
    q = make_queue()
    p = q.push("  yes  ", prompt_id="client-1")
    assert p.prompt == "yes"
    assert p.id == "client-1"


@pytest.mark.parametrize("text", ["", "   \n\t", None, 42])
def test_push_rejects_invalid_text(text):
    q = make_queue()
    q.push("keep")
    with pytest.raises(QueueValidationError):
        q.push(text)
    assert prompts(q) == ["keep"]


def test_push_rejects_oversized_text():
    q = make_queue(max_length=5)
    with pytest.raises(QueueValidationError):
        q.push("toolong")
    assert len(q) == 0
    q.push(" five ")
    assert prompts(q) == ["five"]


def test_validation_error_is_value_error():
    q = make_queue()
    with pytest.raises(ValueError):
        q.push("")


def test_remove_and_edit():
    q = make_queue()
    a = q.push("a")
    b = q.push("b")
    assert q.remove_by_id(a.id) is True
    assert q.remove_by_id("missing") is False
    assert q.edit(b.id, " bee ") is True
    assert q.edit("missing", "x") is False
    assert prompts(q) == ["bee"]


def test_edit_validates_before_mutating():
    q = make_queue()
    a = q.push("a")
    with pytest.raises(QueueValidationError):
        q.edit(a.id, "   ")
    assert prompts(q) == ["a"]


def test_reorder():
    q = make_queue()
    for text in ["a", "b", "c"]:
        q.push(text)
    q.reorder(0, 2)
    assert prompts(q) == ["b", "c", "a"]
    q.reorder(2, 0)
    assert prompts(q) == ["a", "b", "c"]


@pytest.mark.parametrize("from_index,to_index", [(0, 3), (-1, 0), (True, 0), ("0", 1), (0, None)])
def test_reorder_rejects_bad_indices(from_index, to_index):
    q = make_queue()
    for text in ["a", "b", "c"]:
        q.push(text)
    with pytest.raises(QueueValidationError):
        q.reorder(from_index, to_index)
    assert prompts(q) == ["a", "b", "c"]


def test_pop_next_fifo_and_disabled():
    q = make_queue()
    q.push("first")
    q.push("second")
    q.set_enabled(False)
    assert q.pop_next() is None
    q.set_enabled(True)
    assert q.pop_next().prompt == "first"
    assert q.pop_next().prompt == "second"
    assert q.pop_next() is None


def test_set_enabled_requires_bool():
    q = make_queue()
    with pytest.raises(QueueValidationError):
        q.set_enabled("yes")
    assert q.enabled is True


def test_change_listener_receives_full_state():
    seen = []
    q = make_queue(on_change=lambda queue: seen.append((prompts(queue), queue.enabled)))
    q.push("a")
    q.set_enabled(False)
    q.clear()
    assert seen == [(["a"], True), (["a"], False), ([], False)]


def test_writes_immediately_without_event_loop():
    store = MemoryDocumentStore()
    q = make_queue(store)
    q.push("a")
    doc = QueueDocument.model_validate_json(store.read(QUEUE_DOCUMENT))
    assert [p.prompt for p in doc.queue] == ["a"]
    assert doc.enabled is True


@pytest.mark.asyncio
async def test_burst_coalesces_into_one_write():
    store = MemoryDocumentStore()
    q = make_queue(store, debounce=0.05)
    for i in range(10):
        q.push(f"p{i}")
    assert store.writes.get(QUEUE_DOCUMENT, 0) == 0

    await asyncio.sleep(0.2)
    await q.writer.wait_idle()

    assert store.writes[QUEUE_DOCUMENT] == 1
    doc = QueueDocument.model_validate_json(store.read(QUEUE_DOCUMENT))
    assert [p.prompt for p in doc.queue] == [f"p{i}" for i in range(10)]


@pytest.mark.asyncio
async def test_load_restores_persisted_state():
    store = MemoryDocumentStore()
    q = make_queue(store)
    q.push("a")
    q.push("b")
    q.set_enabled(False)
    q.writer.flush_now()

    restored = make_queue(store)
    await restored.load()
    assert prompts(restored) == ["a", "b"]
    assert restored.enabled is False


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [
    "not json at all",
    '{"queue": []}',
    '{"queue": "nope", "enabled": true}',
    '{"queue": [], "enabled": true, "version": 1}',
    "[]",
])
async def test_load_corrupt_document_resets_to_defaults(raw):
    store = MemoryDocumentStore({QUEUE_DOCUMENT: raw})
    q = make_queue(store)
    await q.load()
    assert q.items == []
    assert q.enabled is True


@pytest.mark.asyncio
async def test_load_undecodable_file_resets_to_defaults(tmp_path):
    from askbridge.core.store import FileDocumentStore

    store = FileDocumentStore(tmp_path)
    (tmp_path / "queue-state.json").write_bytes(b'\xff\xfe{"queue": [], "enabled": false}\x80')
    q = make_queue(store)
    await q.load()
    assert q.items == []
    assert q.enabled is True
