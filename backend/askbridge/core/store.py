"""
DocumentStore ABC and the debounced writer.

DocumentStore: raw persistence of named JSON documents
(swap FileDocumentStore ↔ MemoryDocumentStore in tests).
DebouncedWriter: coalesces bursts of mutations into one write per document.

Two documents exist: QUEUE_DOCUMENT ({queue, enabled}) and
HISTORY_DOCUMENT ({history}). Neither carries a version field; a document
that does not validate against its model is replaced by the default.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import PersistenceError

log = logging.getLogger("askbridge.store")

QUEUE_DOCUMENT = "queue-state"
HISTORY_DOCUMENT = "exchange-history"

M = TypeVar("M", bound=BaseModel)


class DocumentStore(ABC):
    """Persistence abstraction for named JSON documents."""

    @abstractmethod
    def read(self, name: str) -> "str | None":
        """Return the raw document, or None if it does not exist."""

    @abstractmethod
    def write(self, name: str, data: str) -> None:
        """Replace the document. Raises PersistenceError on failure."""

    def save(self, name: str, doc: BaseModel) -> None:
        self.write(name, doc.model_dump_json(indent=2))


class MemoryDocumentStore(DocumentStore):
    """In-memory store, no disk I/O. Use in tests."""

    def __init__(self, documents: "dict[str, str] | None" = None) -> None:
        self._documents: dict[str, str] = dict(documents or {})
        self.writes: dict[str, int] = {}

    def read(self, name: str) -> "str | None":
        return self._documents.get(name)

    def write(self, name: str, data: str) -> None:
        self._documents[name] = data
        self.writes[name] = self.writes.get(name, 0) + 1


class FileDocumentStore(DocumentStore):
    """File-based store. Reads/writes ~/.askbridge/data/{name}.json."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        return self._data_dir / f"{name}.json"

    def read(self, name: str) -> "str | None":
        path = self._path(name)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Failed to read {path.name}: {e}") from e

    def write(self, name: str, data: str) -> None:
        path = self._path(name)
        # Atomic write via temp file
        tmp = path.with_suffix(".tmp")
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(data, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {path.name}: {e}") from e


def parse_document(raw: "str | None", model: type[M], default: Callable[[], M]) -> M:
    """Validate a raw document; anything missing or malformed yields default()."""
    if raw is None:
        return default()
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        log.warning("Unreadable %s document, using defaults: %s", model.__name__, e.errors()[0]["msg"])
        return default()


async def load_document(
    store: DocumentStore,
    name: str,
    model: type[M],
    default: Callable[[], M],
) -> M:
    """Load-or-default without blocking the event loop."""
    try:
        raw = await asyncio.to_thread(store.read, name)
    except PersistenceError as e:
        log.error("Load failed  doc=%s error=%s", name, e)
        return default()
    return parse_document(raw, model, default)


class WriterState(enum.Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    FLUSHING = "flushing"


class DebouncedWriter:
    """
    Debounced persistence of one document.

    IDLE --schedule()--> SCHEDULED --timer--> FLUSHING --done--> IDLE
    schedule() while SCHEDULED restarts the timer; schedule() while FLUSHING
    arms a new timer and the next flush starts only after the current one
    finishes, so writes never overlap or land out of order. The snapshot is
    taken when the flush starts: the write always reflects the latest state.
    """

    def __init__(
        self,
        store: DocumentStore,
        name: str,
        snapshot: Callable[[], BaseModel],
        delay: float = 0.3,
    ) -> None:
        self._store = store
        self._name = name
        self._snapshot = snapshot
        self._delay = delay
        self._state = WriterState.IDLE
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None
        self._rerun = False
        # Serializes threaded and synchronous writes; a snapshot older than
        # the last one written is dropped.
        self._lock = threading.Lock()
        self._taken_seq = 0
        self._written_seq = 0

    @property
    def state(self) -> WriterState:
        return self._state

    def schedule(self) -> None:
        """Request a write after the quiet period. Safe to call in bursts."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (scripts, teardown): nothing to debounce against
            self.flush_now()
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self._delay, self._fire)
        if self._state is WriterState.IDLE:
            self._state = WriterState.SCHEDULED

    def flush_now(self) -> bool:
        """Write synchronously, cancelling any pending timer. Returns success."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        ok = self._write(*self._take_snapshot())
        if self._state is WriterState.SCHEDULED:
            self._state = WriterState.IDLE
        return ok

    def cancel(self) -> None:
        """Drop a scheduled write without performing it."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._state is WriterState.SCHEDULED:
            self._state = WriterState.IDLE

    async def wait_idle(self) -> None:
        """Wait for the in-flight flush (if any) to finish."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    def _fire(self) -> None:
        self._timer = None
        if self._state is WriterState.FLUSHING:
            self._rerun = True
            return
        self._state = WriterState.FLUSHING
        self._task = asyncio.get_running_loop().create_task(self._flush())

    async def _flush(self) -> None:
        try:
            while True:
                self._rerun = False
                seq, doc = self._take_snapshot()
                await asyncio.to_thread(self._write, seq, doc)
                if not self._rerun:
                    break
        finally:
            self._state = WriterState.SCHEDULED if self._timer is not None else WriterState.IDLE

    def _take_snapshot(self) -> "tuple[int, BaseModel]":
        self._taken_seq += 1
        return self._taken_seq, self._snapshot()

    def _write(self, seq: int, doc: BaseModel) -> bool:
        with self._lock:
            if seq < self._written_seq:
                log.debug("Skipped stale snapshot  doc=%s seq=%d", self._name, seq)
                return True
            try:
                self._store.save(self._name, doc)
            except PersistenceError as e:
                log.error("Write failed  doc=%s error=%s", self._name, e)
                return False
            self._written_seq = seq
        log.debug("Wrote  doc=%s seq=%d", self._name, seq)
        return True

    def __repr__(self) -> str:
        return f"DebouncedWriter(name={self._name!r}, state={self._state.value!r})"
