"""The queue gate wrapped around every send.

A gate receives ``execute`` (a coroutine function performing the send),
the method name and the request data.  It decides if and when
``execute`` runs.  The client schedules whatever awaitable the gate
returns; a gate may also return ``None`` after stashing ``execute`` for
later, e.g. until connectivity returns.

A request whose ``execute`` never runs never settles its caller.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pymixpanel._redact import redact_for_log

_logger = logging.getLogger(__name__)

SendFn = Callable[[], Awaitable[None]]
QueueSend = Callable[[SendFn, str, dict[str, Any]], Awaitable[None] | None]


async def default_queue_send(send: SendFn, method: str, data: dict[str, Any]) -> None:
    """Send right away; log and swallow whatever the send raises."""
    try:
        await send()
    except Exception:
        _logger.exception("Mixpanel %s send failed: %s", method, redact_for_log(data))
