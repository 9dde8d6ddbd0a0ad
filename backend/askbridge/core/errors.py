"""
Error taxonomy for the broker.

QueueValidationError and StaleRequestError are handled where the UI message
arrives and never reach the agent. SurfaceUnavailableError and
RequestPendingError are raised to the caller of ask(); PersistenceError is
raised by stores and logged by the writers.
"""

from __future__ import annotations


class BrokerError(Exception):
    """Base class for all broker errors."""


class QueueValidationError(BrokerError, ValueError):
    """Malformed or oversized input to a queue operation. Nothing was mutated."""


class SurfaceUnavailableError(BrokerError):
    """A question needs a human but no UI surface is attached."""


class PersistenceError(BrokerError):
    """A document could not be read from or written to the store."""


class StaleRequestError(BrokerError):
    """A submit whose id does not match the current pending request."""

    def __init__(self, request_id: "str | None", current_id: "str | None") -> None:
        self.request_id = request_id
        self.current_id = current_id
        super().__init__(
            f"No pending request {request_id!r} (current: {current_id!r})"
        )


class RequestPendingError(BrokerError):
    """ask() was called while another request is still pending."""

    def __init__(self, current_id: str) -> None:
        self.current_id = current_id
        super().__init__(f"Request {current_id!r} is still pending")
