"""
Readiness gate between the broker and the UI surface.

The surface initializes asynchronously: it can be attached (connected) well
before its script is able to handle messages. Until it sends `ready`:

- state events (queue, session, history) are dropped; the broker re-sends
  the full state on ready
- the pending question is buffered (one slot) and replayed on ready

If the surface goes away and a new one attaches while a question is still
pending, the earlier buffered copy is gone; on the next ready the gate
re-sends the *current* pending question obtained from `current_question`.
Readiness is one-shot per surface lifetime.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .events import Event, PendingQuestionEvent
    from .surface import UiSurface

log = logging.getLogger("askbridge.gate")


class ReadinessGate:
    """Buffers the pending-question notification until the surface is ready."""

    def __init__(self, current_question: "Callable[[], PendingQuestionEvent | None]") -> None:
        self._current_question = current_question
        self._surface: "UiSurface | None" = None
        self._ready = False
        self._buffered: "PendingQuestionEvent | None" = None

    # ── Surface lifecycle ─────────────────────────────────────────────────────

    def attach(self, surface: "UiSurface") -> None:
        """A new surface exists. It is not ready until signal_ready()."""
        if self._surface is not None and self._surface is not surface:
            log.info("Surface replaced  old=%r new=%r", self._surface, surface)
        self._surface = surface
        self._ready = False

    def detach(self, surface: "UiSurface | None" = None) -> None:
        """The surface was destroyed. Ignored if `surface` is not the attached one."""
        if surface is not None and surface is not self._surface:
            return
        self._surface = None
        self._ready = False
        self._buffered = None

    def signal_ready(self, sync_state: "Callable[[], None] | None" = None) -> bool:
        """Mark the surface ready, let `sync_state` post the full state, then
        replay the pending question.

        Returns False when there is no surface or it was already ready
        (duplicate signal): nothing is sent twice.
        """
        if self._surface is None:
            log.warning("Ready signal without an attached surface")
            return False
        if self._ready:
            log.debug("Duplicate ready signal ignored")
            return False
        self._ready = True
        if sync_state is not None:
            sync_state()

        buffered, self._buffered = self._buffered, None
        current = self._current_question()
        if current is None:
            if buffered is not None:
                log.debug("Dropped answered question  id=%s", buffered.id)
            return True
        if buffered is not None and buffered.id == current.id:
            log.info("Replaying buffered question  id=%s", current.id)
            self._surface.post(buffered)
        else:
            log.info("Re-sending pending question after reconnect  id=%s", current.id)
            self._surface.post(current)
        return True

    # ── Delivery ──────────────────────────────────────────────────────────────

    def deliver_question(self, event: "PendingQuestionEvent") -> None:
        """Send now if ready, otherwise hold it (replacing any older one)."""
        if self._surface is not None and self._ready:
            self._surface.post(event)
            return
        self._buffered = event
        log.debug("Buffered question until ready  id=%s", event.id)

    def forget_question(self, request_id: str) -> None:
        """Drop the buffered question if it is the one that just got resolved."""
        if self._buffered is not None and self._buffered.id == request_id:
            self._buffered = None

    def post(self, event: "Event") -> bool:
        """Send a state event if the surface is ready. Returns whether it was sent."""
        if self._surface is None or not self._ready:
            return False
        self._surface.post(event)
        return True

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def attached(self) -> bool:
        return self._surface is not None

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def buffered(self) -> "PendingQuestionEvent | None":
        return self._buffered
