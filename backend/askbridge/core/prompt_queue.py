"""
Prompt queue for askbridge.

An ordered, user-editable list of pre-staged answers. When enabled
("autopilot"), the broker answers the next question with the head item
instead of waiting for the human.

Every mutation validates first and raises QueueValidationError without
touching state; a successful mutation schedules a debounced write of the
queue-state document and calls the change listener with the full state.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from .errors import QueueValidationError
from .models import QueueDocument, QueuedPrompt
from .store import QUEUE_DOCUMENT, DebouncedWriter, load_document

if TYPE_CHECKING:
    from .store import DocumentStore

log = logging.getLogger("askbridge.queue")

DEFAULT_MAX_PROMPT_LENGTH = 10000


def _new_prompt_id() -> str:
    return f"q_{uuid.uuid4().hex[:12]}"


def _default_document() -> QueueDocument:
    return QueueDocument(queue=[], enabled=True)


def _is_index(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class PromptQueue:
    """FIFO queue of pre-staged answers, persisted as the queue-state document."""

    def __init__(
        self,
        store: "DocumentStore",
        max_length: int = DEFAULT_MAX_PROMPT_LENGTH,
        debounce: float = 0.3,
        on_change: "Callable[[PromptQueue], None] | None" = None,
    ) -> None:
        self._items: list[QueuedPrompt] = []
        self._enabled = True
        self._max_length = max_length
        self._on_change = on_change
        self._store = store
        self.writer = DebouncedWriter(store, QUEUE_DOCUMENT, self.snapshot, delay=debounce)

    # ── Loading ───────────────────────────────────────────────────────────────

    async def load(self) -> None:
        """Replace in-memory state with the persisted document (or defaults)."""
        doc = await load_document(self._store, QUEUE_DOCUMENT, QueueDocument, _default_document)
        self._items = list(doc.queue)
        self._enabled = doc.enabled
        log.info("Loaded  items=%d enabled=%s", len(self._items), self._enabled)

    def snapshot(self) -> QueueDocument:
        return QueueDocument(
            queue=[p.model_copy() for p in self._items],
            enabled=self._enabled,
        )

    # ── Mutations ─────────────────────────────────────────────────────────────

    def push(self, text: str, prompt_id: str | None = None) -> QueuedPrompt:
        """Append a prompt. The UI may supply its own id for optimistic rendering."""
        prompt = QueuedPrompt(
            id=prompt_id or _new_prompt_id(),
            prompt=self._validate_text(text),
            created_at=datetime.now(timezone.utc),
        )
        self._items.append(prompt)
        log.info("Pushed  id=%s depth=%d", prompt.id, len(self._items))
        self._changed()
        return prompt

    def remove_by_id(self, prompt_id: str) -> bool:
        """Remove a prompt. Returns False if no prompt has that id."""
        before = len(self._items)
        self._items = [p for p in self._items if p.id != prompt_id]
        if len(self._items) == before:
            log.debug("Remove ignored, unknown id=%s", prompt_id)
            return False
        self._changed()
        return True

    def edit(self, prompt_id: str, text: str) -> bool:
        """Replace a prompt's text in place. Returns False if no prompt has that id."""
        trimmed = self._validate_text(text)
        for prompt in self._items:
            if prompt.id == prompt_id:
                prompt.prompt = trimmed
                self._changed()
                return True
        log.debug("Edit ignored, unknown id=%s", prompt_id)
        return False

    def reorder(self, from_index: int, to_index: int) -> None:
        """Move the item at from_index so it ends up at to_index."""
        if not _is_index(from_index) or not _is_index(to_index):
            raise QueueValidationError("Queue indices must be integers")
        size = len(self._items)
        if not (0 <= from_index < size and 0 <= to_index < size):
            raise QueueValidationError(
                f"Queue index out of range (from={from_index}, to={to_index}, size={size})"
            )
        item = self._items.pop(from_index)
        self._items.insert(to_index, item)
        self._changed()

    def clear(self) -> None:
        self._items = []
        self._changed()

    def set_enabled(self, enabled: bool) -> None:
        if not isinstance(enabled, bool):
            raise QueueValidationError("enabled must be a boolean")
        self._enabled = enabled
        log.info("Autopilot %s", "on" if enabled else "off")
        self._changed()

    def pop_next(self) -> QueuedPrompt | None:
        """Consume the head item if the queue is enabled and non-empty."""
        if not self._enabled or not self._items:
            return None
        prompt = self._items.pop(0)
        log.info("Consumed  id=%s remaining=%d", prompt.id, len(self._items))
        self._changed()
        return prompt

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def items(self) -> list[QueuedPrompt]:
        return list(self._items)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"PromptQueue(items={len(self._items)}, enabled={self._enabled})"

    # ── Internals ─────────────────────────────────────────────────────────────

    def _validate_text(self, text: object) -> str:
        if not isinstance(text, str):
            raise QueueValidationError("Prompt must be text")
        trimmed = text.strip()
        if not trimmed:
            raise QueueValidationError("Prompt is empty")
        if len(trimmed) > self._max_length:
            raise QueueValidationError(
                f"Prompt is too long ({len(trimmed)} > {self._max_length} characters)"
            )
        return trimmed

    def _changed(self) -> None:
        self.writer.schedule()
        if self._on_change is not None:
            self._on_change(self)
