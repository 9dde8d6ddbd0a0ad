"""
Session history for askbridge.

Two views over overlapping data:
- current session: every exchange of this process, most recent first,
  including the live pending one (chat feed)
- persisted history: completed exchanges of past sessions, capped at
  max_entries (review surface). Never contains a pending entry.

The current session lives in memory only; save_session() folds its
completed entries into the persisted history at teardown.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from .errors import PersistenceError
from .models import HistoryDocument, ToolCallEntry
from .store import HISTORY_DOCUMENT, load_document

if TYPE_CHECKING:
    from .store import DocumentStore

log = logging.getLogger("askbridge.history")

DEFAULT_MAX_HISTORY_ENTRIES = 100


def _new_session_id() -> str:
    return f"session_{uuid.uuid4().hex[:12]}"


def _empty_document() -> HistoryDocument:
    return HistoryDocument(history=[])


class SessionHistory:
    """In-memory log of this session plus the persisted cross-session history."""

    def __init__(
        self,
        store: "DocumentStore",
        max_entries: int = DEFAULT_MAX_HISTORY_ENTRIES,
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or _new_session_id()
        self._store = store
        self._max_entries = max_entries
        self._entries: list[ToolCallEntry] = []        # most recent first
        self._by_id: dict[str, ToolCallEntry] = {}
        self._persisted: list[ToolCallEntry] = []
        self._saved_ids: set[str] = set()

    # ── Loading / saving ──────────────────────────────────────────────────────

    async def load(self) -> None:
        doc = await load_document(self._store, HISTORY_DOCUMENT, HistoryDocument, _empty_document)
        self._persisted = [e for e in doc.history if e.status == "completed"][: self._max_entries]
        log.info("Loaded  persisted=%d", len(self._persisted))

    def save_session(self) -> bool:
        """Fold completed entries into persisted history and write synchronously.

        Entries already persisted (by id) are skipped, so calling this twice
        never duplicates an exchange. Returns False if the write failed.
        """
        known = {e.id for e in self._persisted} | self._saved_ids
        completed = [
            e.model_copy() for e in self._entries
            if e.status == "completed" and e.id not in known
        ]
        if not completed:
            return True
        self._persisted = (completed + self._persisted)[: self._max_entries]
        self._saved_ids.update(e.id for e in completed)
        log.info("Session saved  id=%s added=%d persisted=%d",
                 self.session_id, len(completed), len(self._persisted))
        return self._write()

    def _write(self) -> bool:
        doc = HistoryDocument(
            history=[e for e in self._persisted if e.status == "completed"]
        )
        try:
            self._store.save(HISTORY_DOCUMENT, doc)
        except PersistenceError as e:
            log.error("Write failed  doc=%s error=%s", HISTORY_DOCUMENT, e)
            return False
        return True

    # ── Current session ───────────────────────────────────────────────────────

    def record_pending(self, request_id: str, prompt: str) -> ToolCallEntry:
        return self._add(ToolCallEntry(
            id=request_id,
            prompt=prompt,
            timestamp=datetime.now(timezone.utc),
            status="pending",
            session_id=self.session_id,
        ))

    def record_completed(self, request_id: str, prompt: str, response: str, from_queue: bool) -> ToolCallEntry:
        return self._add(ToolCallEntry(
            id=request_id,
            prompt=prompt,
            response=response,
            timestamp=datetime.now(timezone.utc),
            from_queue=from_queue,
            status="completed",
            session_id=self.session_id,
        ))

    def complete(self, request_id: str, response: str, from_queue: bool = False) -> ToolCallEntry:
        """Transition a pending entry to completed. Raises KeyError if not pending."""
        entry = self._by_id.get(request_id)
        if entry is None or entry.status != "pending":
            raise KeyError(f"No pending entry: {request_id}")
        entry.response = response
        entry.from_queue = from_queue
        entry.status = "completed"
        entry.timestamp = datetime.now(timezone.utc)
        return entry

    def discard(self, request_id: str) -> bool:
        """Drop a pending entry (abandoned request). Completed entries are kept."""
        entry = self._by_id.get(request_id)
        if entry is None or entry.status != "pending":
            return False
        del self._by_id[request_id]
        self._entries.remove(entry)
        return True

    def get(self, request_id: str) -> ToolCallEntry | None:
        return self._by_id.get(request_id)

    def current_session(self) -> list[ToolCallEntry]:
        return list(self._entries)

    def _add(self, entry: ToolCallEntry) -> ToolCallEntry:
        self._entries.insert(0, entry)
        self._by_id[entry.id] = entry
        return entry

    # ── Persisted history ─────────────────────────────────────────────────────

    def persisted(self) -> list[ToolCallEntry]:
        return list(self._persisted)

    def remove_persisted(self, entry_id: str) -> bool:
        before = len(self._persisted)
        self._persisted = [e for e in self._persisted if e.id != entry_id]
        if len(self._persisted) == before:
            return False
        self._write()
        return True

    def clear_persisted(self) -> None:
        self._persisted = []
        self._write()

    @property
    def pending_count(self) -> int:
        return sum(1 for e in self._entries if e.status == "pending")

    def __repr__(self) -> str:
        return (f"SessionHistory(session_id={self.session_id!r}, "
                f"current={len(self._entries)}, persisted={len(self._persisted)})")
