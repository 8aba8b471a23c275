"""Transport selection and the three send mechanisms.

The host supplies up to three primitives through :class:`HostEnvironment`:

* a beacon callable (fire and forget, no observable response),
* an :class:`aiohttp.ClientSession` for awaitable requests,
* a factory for callback-style request objects.

:func:`select_transport` probes the environment once per dispatch and
:func:`send_request` adapts whichever mechanism was picked into a single
:class:`TransportResult`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

import aiohttp

from pymixpanel._constants import FORM_CONTENT_TYPE
from pymixpanel.exceptions import MixpanelConfigError
from pymixpanel.visibility import PageVisibility

_logger = logging.getLogger(__name__)

Beacon = Callable[[str, str], bool]
"""``beacon(url, payload) -> accepted``."""


class CallbackRequest(Protocol):
    """Callback-style request object (XMLHttpRequest shaped).

    Only :func:`send_request` touches these mutable fields.
    """

    on_load: Callable[[], None] | None
    on_error: Callable[[], None] | None
    response: Any
    response_type: str
    status: int

    def open(self, method: str, url: str) -> None:
        ...

    def set_request_header(self, header: str, value: str) -> None:
        ...

    def send(self, data: str) -> None:
        ...


@dataclass(frozen=True, slots=True)
class HostEnvironment:
    """Send primitives available to a client.

    Any of them may be missing.  The caller keeps ownership of
    ``http_session`` when it passes one in.
    """

    beacon: Beacon | None = None
    http_session: aiohttp.ClientSession | None = None
    callback_request_factory: Callable[[], CallbackRequest] | None = None


class TransportKind(StrEnum):
    BEACON = "beacon"
    PROMISE_REQUEST = "promise_request"
    CALLBACK_REQUEST = "callback_request"


@dataclass(frozen=True, slots=True)
class TransportResult:
    """Outcome of one transport invocation.

    ``status`` is ``None`` when no HTTP response was obtained.  ``body``
    is only populated when the response was requested to be parsed.
    """

    kind: TransportKind
    ok: bool
    status: int | None = None
    body: Any = None
    error: str | None = None


def select_transport(environment: HostEnvironment, visibility: PageVisibility) -> TransportKind:
    """Pick the send mechanism for the next request."""
    if visibility.hidden and environment.beacon is not None:
        return TransportKind.BEACON
    if environment.http_session is not None:
        return TransportKind.PROMISE_REQUEST
    if environment.callback_request_factory is not None:
        return TransportKind.CALLBACK_REQUEST
    if environment.beacon is not None:
        # Visible page with nothing but a beacon: still better than dropping.
        return TransportKind.BEACON
    raise MixpanelConfigError("No transport available: provide a beacon, an HTTP session or a request factory")


async def send_request(
    kind: TransportKind,
    environment: HostEnvironment,
    url: str,
    payload: str,
    *,
    inspect_response: bool = False,
) -> TransportResult:
    """POST *payload* to *url* using the transport *kind*."""
    _logger.debug("POST %s via %s", url, kind)
    if kind is TransportKind.BEACON:
        assert environment.beacon is not None  # noqa: S101
        return _send_beacon(environment.beacon, url, payload)
    if kind is TransportKind.PROMISE_REQUEST:
        assert environment.http_session is not None  # noqa: S101
        return await _send_promise_request(environment.http_session, url, payload, inspect_response)
    assert environment.callback_request_factory is not None  # noqa: S101
    return await _send_callback_request(environment.callback_request_factory(), url, payload, inspect_response)


def _send_beacon(beacon: Beacon, url: str, payload: str) -> TransportResult:
    # Accepted only means queued for delivery by the host.
    try:
        accepted = beacon(url, payload)
    except Exception as exc:
        _logger.debug("Beacon raised for %s", url, exc_info=True)
        return TransportResult(kind=TransportKind.BEACON, ok=False, error=f"beacon raised: {exc!r}")
    if accepted:
        return TransportResult(kind=TransportKind.BEACON, ok=True)
    return TransportResult(kind=TransportKind.BEACON, ok=False, error="beacon refused the payload")


async def _send_promise_request(
    session: aiohttp.ClientSession,
    url: str,
    payload: str,
    inspect_response: bool,
) -> TransportResult:
    headers = {"Content-Type": FORM_CONTENT_TYPE}
    try:
        async with session.post(url, data=payload, headers=headers) as resp:
            status = resp.status
            ok = 200 <= status < 300
            body: Any = None
            if ok and inspect_response:
                try:
                    body = await resp.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError) as exc:
                    return TransportResult(
                        kind=TransportKind.PROMISE_REQUEST,
                        ok=False,
                        status=status,
                        error=f"Invalid JSON response: {exc}",
                    )
    except (aiohttp.ClientError, TimeoutError) as exc:
        return TransportResult(kind=TransportKind.PROMISE_REQUEST, ok=False, error=str(exc) or type(exc).__name__)
    return TransportResult(kind=TransportKind.PROMISE_REQUEST, ok=ok, status=status, body=body)


async def _send_callback_request(
    request: CallbackRequest,
    url: str,
    payload: str,
    inspect_response: bool,
) -> TransportResult:
    loop = asyncio.get_running_loop()
    future: asyncio.Future[TransportResult] = loop.create_future()

    def _settle(result: TransportResult) -> None:
        if not future.done():
            future.set_result(result)

    def _on_load() -> None:
        status = getattr(request, "status", None)
        ok = status is None or 200 <= status < 300
        body = request.response if inspect_response else None
        loop.call_soon_threadsafe(
            _settle,
            TransportResult(kind=TransportKind.CALLBACK_REQUEST, ok=ok, status=status, body=body),
        )

    def _on_error() -> None:
        loop.call_soon_threadsafe(
            _settle,
            TransportResult(kind=TransportKind.CALLBACK_REQUEST, ok=False, error="request error"),
        )

    try:
        request.open("POST", url)
        request.set_request_header("Content-Type", FORM_CONTENT_TYPE)
        if inspect_response:
            request.response_type = "json"
        request.on_load = _on_load
        request.on_error = _on_error
        request.send(payload)
    except Exception as exc:
        _logger.debug("Callback request to %s raised", url, exc_info=True)
        return TransportResult(kind=TransportKind.CALLBACK_REQUEST, ok=False, error=f"request raised: {exc!r}")
    return await future
