"""
RequestBroker: request/response correlation between the agent and the human.

The broker is the context object of the service: it owns the prompt queue,
the session history and the readiness gate, and is the only thing that
mutates them. Built once per process (see RequestBroker.open) and passed
explicitly to whoever needs it.

Per request:

    ask() ──queue enabled & non-empty──► completed (from_queue), Future resolved
      │
      └──► pending ──submit()/queue drain──► completed, Future resolved
                └──abandon()──► dropped, Future cancelled

At most one request is pending; its id is the current correlation id.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING, Iterable

from .classifier import classify
from .errors import RequestPendingError, StaleRequestError, SurfaceUnavailableError
from .events import (
    CurrentSessionEvent,
    ExchangeCompletedEvent,
    PendingQuestionEvent,
    PersistedHistoryEvent,
    UpdateQueueEvent,
)
from .gate import ReadinessGate
from .history import DEFAULT_MAX_HISTORY_ENTRIES, SessionHistory
from .models import UserResponse
from .prompt_queue import DEFAULT_MAX_PROMPT_LENGTH, PromptQueue

if TYPE_CHECKING:
    from ..config import Config
    from .models import Attachment, QueuedPrompt, ToolCallEntry
    from .store import DocumentStore
    from .surface import UiSurface

log = logging.getLogger("askbridge.broker")


def _new_request_id() -> str:
    return f"tc_{uuid.uuid4().hex[:12]}"


class RequestBroker:
    """Correlates agent questions with human (or queued) answers."""

    def __init__(
        self,
        store: "DocumentStore",
        max_history_entries: int = DEFAULT_MAX_HISTORY_ENTRIES,
        max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH,
        debounce: float = 0.3,
        ask_timeout: "float | None" = None,
        session_id: "str | None" = None,
    ) -> None:
        self.ask_timeout = ask_timeout
        self._queue = PromptQueue(
            store,
            max_length=max_prompt_length,
            debounce=debounce,
            on_change=self._on_queue_change,
        )
        self._history = SessionHistory(store, max_entries=max_history_entries, session_id=session_id)
        self._gate = ReadinessGate(self._current_question)
        self._pending: dict[str, asyncio.Future[UserResponse]] = {}
        self._current_id: "str | None" = None

    @classmethod
    async def open(cls, config: "Config", store: "DocumentStore") -> "RequestBroker":
        """Build a broker from config and load both documents."""
        broker = cls(
            store,
            max_history_entries=config.max_history_entries,
            max_prompt_length=config.max_prompt_length,
            debounce=config.queue_save_debounce,
            ask_timeout=config.ask_timeout,
        )
        await broker.load()
        log.info("Opened  session=%s queue=%d enabled=%s history=%d",
                 broker.session_id, len(broker._queue), broker.queue_enabled,
                 len(broker.persisted_history()))
        return broker

    async def load(self) -> None:
        await asyncio.gather(self._queue.load(), self._history.load())

    # ── Agent side ────────────────────────────────────────────────────────────

    def ask(self, question: str) -> "asyncio.Future[UserResponse]":
        """Register a question and return a Future for its answer.

        Autopilot: with the queue enabled and non-empty the head item answers
        immediately and the returned Future is already resolved. Otherwise the
        question is handed to the UI and the Future resolves on submit().

        Raises RequestPendingError if a request is already pending and
        SurfaceUnavailableError if a human is needed but no UI is attached.
        """
        if self._current_id is not None:
            raise RequestPendingError(self._current_id)

        loop = asyncio.get_running_loop()
        future: asyncio.Future[UserResponse] = loop.create_future()
        request_id = _new_request_id()

        queued = self._queue.pop_next()
        if queued is not None:
            entry = self._history.record_completed(request_id, question, queued.prompt, from_queue=True)
            log.info("Auto-answered from queue  id=%s prompt_id=%s", request_id, queued.id)
            self._gate.post(ExchangeCompletedEvent(entry=entry.model_copy()))
            self._publish_session()
            future.set_result(UserResponse(value=queued.prompt, from_queue=True))
            return future

        if not self._gate.attached:
            raise SurfaceUnavailableError("No UI surface is attached to answer the question")

        self._history.record_pending(request_id, question)
        self._pending[request_id] = future
        self._current_id = request_id
        log.info("Question pending  id=%s length=%d", request_id, len(question))
        self._gate.deliver_question(PendingQuestionEvent(
            id=request_id,
            prompt=question,
            hint=classify(question),
        ))
        self._publish_session()
        return future

    def abandon(self, request_id: str) -> bool:
        """Give up on a pending request (agent timeout). The entry is dropped
        from the session and never persisted; its Future is cancelled."""
        if request_id != self._current_id:
            log.debug("Abandon ignored  id=%s current=%s", request_id, self._current_id)
            return False
        self._current_id = None
        self._history.discard(request_id)
        self._gate.forget_question(request_id)
        future = self._pending.pop(request_id, None)
        if future is not None and not future.done():
            future.cancel()
        log.warning("Abandoned  id=%s", request_id)
        self._publish_session()
        return True

    # ── Human side ────────────────────────────────────────────────────────────

    def submit(
        self,
        value: str,
        attachments: "Iterable[Attachment]" = (),
        request_id: "str | None" = None,
    ) -> "ToolCallEntry | None":
        """Answer the pending request.

        With no request pending and no request_id, the text is staged as a
        queued prompt and the queue is switched on; returns None in that case.
        Raises StaleRequestError when request_id does not match the pending id.
        """
        if self._current_id is None and request_id is None:
            self._queue.push(value)
            if not self._queue.enabled:
                self._queue.set_enabled(True)
            log.info("Submit with nothing pending, staged in queue")
            return None
        if self._current_id is None or (request_id is not None and request_id != self._current_id):
            log.warning("Stale submit  id=%s current=%s", request_id, self._current_id)
            raise StaleRequestError(request_id, self._current_id)
        return self._resolve(self._current_id, value, list(attachments), from_queue=False)

    # ── Queue operations ──────────────────────────────────────────────────────

    def add_queue_prompt(self, text: str, prompt_id: "str | None" = None) -> "QueuedPrompt":
        prompt = self._queue.push(text, prompt_id=prompt_id)
        self._drain()
        return prompt

    def remove_queue_prompt(self, prompt_id: str) -> bool:
        return self._queue.remove_by_id(prompt_id)

    def edit_queue_prompt(self, prompt_id: str, text: str) -> bool:
        return self._queue.edit(prompt_id, text)

    def reorder_queue(self, from_index: int, to_index: int) -> None:
        self._queue.reorder(from_index, to_index)

    def toggle_queue(self, enabled: bool) -> None:
        self._queue.set_enabled(enabled)
        if enabled:
            self._drain()

    def clear_queue(self) -> None:
        self._queue.clear()

    # ── Persisted history ─────────────────────────────────────────────────────

    def remove_history_item(self, entry_id: str) -> bool:
        removed = self._history.remove_persisted(entry_id)
        if removed:
            self._publish_persisted()
        return removed

    def clear_persisted_history(self) -> None:
        self._history.clear_persisted()
        self._publish_persisted()

    def open_history(self) -> None:
        self._publish_persisted()

    # ── Surface lifecycle ─────────────────────────────────────────────────────

    def attach_surface(self, surface: "UiSurface") -> None:
        self._gate.attach(surface)

    def detach_surface(self, surface: "UiSurface | None" = None) -> None:
        self._gate.detach(surface)

    def signal_ready(self) -> bool:
        """The surface finished initializing: send full state, then the pending question."""
        return self._gate.signal_ready(self._sync_state)

    # ── Views ─────────────────────────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._history.session_id

    @property
    def current_request_id(self) -> "str | None":
        return self._current_id

    @property
    def queue_items(self) -> "list[QueuedPrompt]":
        return self._queue.items

    @property
    def queue_enabled(self) -> bool:
        return self._queue.enabled

    @property
    def surface_ready(self) -> bool:
        return self._gate.ready

    def current_session(self) -> "list[ToolCallEntry]":
        return self._history.current_session()

    def persisted_history(self) -> "list[ToolCallEntry]":
        return self._history.persisted()

    # ── Teardown ──────────────────────────────────────────────────────────────

    def dispose(self) -> None:
        """Persist and release everything. Outstanding Futures are left as they are."""
        self._history.save_session()
        self._queue.writer.flush_now()
        if self._pending:
            log.info("Disposing with pending request  id=%s", self._current_id)
        self._pending.clear()
        self._current_id = None
        self._gate.detach()
        log.info("Disposed  session=%s", self.session_id)

    def __repr__(self) -> str:
        return (f"RequestBroker(session_id={self.session_id!r}, "
                f"current={self._current_id!r}, queue={len(self._queue)})")

    # ── Internals ─────────────────────────────────────────────────────────────

    def _resolve(
        self,
        request_id: str,
        value: str,
        attachments: "list[Attachment]",
        from_queue: bool,
    ) -> "ToolCallEntry":
        entry = self._history.complete(request_id, value, from_queue=from_queue)
        self._current_id = None
        self._gate.forget_question(request_id)
        log.info("Answered  id=%s from_queue=%s attachments=%d", request_id, from_queue, len(attachments))
        self._gate.post(ExchangeCompletedEvent(entry=entry.model_copy()))
        self._publish_session()
        future = self._pending.pop(request_id, None)
        if future is not None and not future.done():
            future.set_result(UserResponse(value=value, attachments=attachments, from_queue=from_queue))
        return entry

    def _drain(self) -> None:
        """Answer the pending request from the queue head, if allowed."""
        if self._current_id is None:
            return
        queued = self._queue.pop_next()
        if queued is None:
            return
        log.info("Pending request answered mid-flight  id=%s prompt_id=%s", self._current_id, queued.id)
        self._resolve(self._current_id, queued.prompt, [], from_queue=True)

    def _current_question(self) -> "PendingQuestionEvent | None":
        if self._current_id is None:
            return None
        entry = self._history.get(self._current_id)
        if entry is None or entry.status != "pending":
            return None
        return PendingQuestionEvent(id=entry.id, prompt=entry.prompt, hint=classify(entry.prompt))

    def _on_queue_change(self, queue: PromptQueue) -> None:
        doc = queue.snapshot()
        self._gate.post(UpdateQueueEvent(queue=doc.queue, enabled=doc.enabled))

    def _publish_session(self) -> None:
        self._gate.post(CurrentSessionEvent(
            history=[e.model_copy() for e in self._history.current_session()]
        ))

    def _publish_persisted(self) -> None:
        self._gate.post(PersistedHistoryEvent(history=self._history.persisted()))

    def _sync_state(self) -> None:
        self._on_queue_change(self._queue)
        self._publish_session()
        self._publish_persisted()
