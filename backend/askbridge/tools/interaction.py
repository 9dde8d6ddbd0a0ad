"""
Agent-facing ask_user tool.

ask_user() is what the agent calls when it needs a human decision: it asks
the broker, waits for the answer (or the queued autopilot answer) and
returns an AskUserResult. It never raises: a missing UI, a request already
pending, a persistence failure or a timeout all come back as an empty
response so the agent can carry on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ..core.errors import BrokerError
from ..core.models import AskUserResult

if TYPE_CHECKING:
    from ..core.broker import RequestBroker

log = logging.getLogger("askbridge.tools.ask_user")


async def ask_user(
    broker: "RequestBroker",
    question: str,
    timeout: "float | None" = None,
) -> AskUserResult:
    """Ask the human `question` and wait for the answer.

    timeout defaults to the broker's configured ask timeout; None waits for
    as long as it takes. On timeout the request is abandoned.
    """
    if timeout is None:
        timeout = broker.ask_timeout
    try:
        future = broker.ask(question)
    except BrokerError as e:
        log.warning("ask_user failed  error=%s", e)
        return AskUserResult(response="")

    request_id = broker.current_request_id if not future.done() else None
    try:
        response = await asyncio.wait_for(future, timeout)
    except asyncio.TimeoutError:
        log.warning("ask_user timed out  id=%s timeout=%s", request_id, timeout)
        if request_id is not None:
            broker.abandon(request_id)
        return AskUserResult(response="")

    return AskUserResult(
        response=response.value,
        attachments=[a.uri for a in response.attachments],
    )
