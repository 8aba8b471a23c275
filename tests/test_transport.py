from __future__ import annotations

import asyncio
import threading

import aiohttp
import pytest

from pymixpanel._transport import (
    HostEnvironment,
    TransportKind,
    select_transport,
    send_request,
)
from pymixpanel.exceptions import MixpanelConfigError
from pymixpanel.visibility import PageVisibility, VisibilityState


def test_hidden_page_selects_beacon_even_with_session(hidden, beacon, session) -> None:
    env = HostEnvironment(beacon=beacon, http_session=session)
    assert select_transport(env, hidden) is TransportKind.BEACON


def test_visible_page_prefers_promise_request_over_callback(visible, beacon, session, make_callback_request) -> None:
    env = HostEnvironment(beacon=beacon, http_session=session, callback_request_factory=make_callback_request)
    assert select_transport(env, visible) is TransportKind.PROMISE_REQUEST


def test_callback_request_is_the_fallback(visible, beacon, make_callback_request) -> None:
    env = HostEnvironment(beacon=beacon, callback_request_factory=make_callback_request)
    assert select_transport(env, visible) is TransportKind.CALLBACK_REQUEST


def test_hidden_page_without_beacon_uses_session(hidden, session) -> None:
    assert select_transport(HostEnvironment(http_session=session), hidden) is TransportKind.PROMISE_REQUEST


def test_beacon_is_last_resort_when_visible(visible, beacon) -> None:
    assert select_transport(HostEnvironment(beacon=beacon), visible) is TransportKind.BEACON


def test_empty_environment_is_a_config_error(visible) -> None:
    with pytest.raises(MixpanelConfigError):
        select_transport(HostEnvironment(), visible)


def test_visibility_defaults_to_visible() -> None:
    assert PageVisibility().hidden is False


def test_visibility_follows_change_notifications(make_visibility_source) -> None:
    source = make_visibility_source(VisibilityState.VISIBLE)
    visibility = PageVisibility()
    visibility.install(source)
    assert visibility.hidden is False

    source.change(VisibilityState.HIDDEN)
    assert visibility.hidden is True

    source.change(VisibilityState.VISIBLE)
    assert visibility.hidden is False


def test_visibility_source_installs_once(make_visibility_source) -> None:
    visibility = PageVisibility()
    visibility.install(make_visibility_source())
    with pytest.raises(MixpanelConfigError):
        visibility.install(make_visibility_source())


@pytest.mark.asyncio
async def test_promise_request_posts_form_payload(session) -> None:
    env = HostEnvironment(http_session=session)
    result = await send_request(TransportKind.PROMISE_REQUEST, env, "https://collector/track", "data=x")

    assert result.ok is True
    assert result.status == 200
    assert result.body is None
    assert session.calls == [
        ("https://collector/track", "data=x", {"Content-Type": "application/x-www-form-urlencoded"}),
    ]


@pytest.mark.asyncio
async def test_promise_request_parses_body_when_inspecting(make_session) -> None:
    env = HostEnvironment(http_session=make_session(body={"status": 0, "error": "bad token"}))
    result = await send_request(TransportKind.PROMISE_REQUEST, env, "u", "p", inspect_response=True)
    assert result.body == {"status": 0, "error": "bad token"}


@pytest.mark.asyncio
async def test_promise_request_reports_http_status(make_session) -> None:
    env = HostEnvironment(http_session=make_session(status=503))
    result = await send_request(TransportKind.PROMISE_REQUEST, env, "u", "p")
    assert result.ok is False
    assert result.status == 503


@pytest.mark.asyncio
async def test_promise_request_network_error_has_no_status(make_session) -> None:
    env = HostEnvironment(http_session=make_session(exc=aiohttp.ClientConnectionError("connection reset")))
    result = await send_request(TransportKind.PROMISE_REQUEST, env, "u", "p")
    assert result.ok is False
    assert result.status is None
    assert result.error == "connection reset"


@pytest.mark.asyncio
async def test_beacon_result_reflects_acceptance(beacon) -> None:
    result = await send_request(TransportKind.BEACON, HostEnvironment(beacon=beacon), "u", "p")
    assert result.ok is True
    assert beacon.calls == [("u", "p")]

    beacon.accept = False
    result = await send_request(TransportKind.BEACON, HostEnvironment(beacon=beacon), "u", "p")
    assert result.ok is False
    assert result.status is None


@pytest.mark.asyncio
async def test_callback_request_is_configured_like_promise_request(make_callback_request) -> None:
    request = make_callback_request(response={"status": 1})
    env = HostEnvironment(callback_request_factory=lambda: request)

    result = await send_request(TransportKind.CALLBACK_REQUEST, env, "https://c/engage", "data=1", inspect_response=True)

    assert request.opened == ("POST", "https://c/engage")
    assert request.headers == {"Content-Type": "application/x-www-form-urlencoded"}
    assert request.response_type == "json"
    assert request.sent == "data=1"
    assert result.ok is True
    assert result.body == {"status": 1}


@pytest.mark.asyncio
async def test_callback_request_error(make_callback_request) -> None:
    env = HostEnvironment(callback_request_factory=lambda: make_callback_request(fail=True))
    result = await send_request(TransportKind.CALLBACK_REQUEST, env, "u", "p")
    assert result.ok is False
    assert result.status is None


@pytest.mark.asyncio
async def test_callback_request_settles_from_another_thread(make_callback_request) -> None:
    request = make_callback_request(status=500)

    def _send_in_thread(data: str) -> None:
        request.sent = data
        threading.Thread(target=request.on_load).start()

    request.send = _send_in_thread  # type: ignore[method-assign]
    env = HostEnvironment(callback_request_factory=lambda: request)

    result = await asyncio.wait_for(send_request(TransportKind.CALLBACK_REQUEST, env, "u", "p"), timeout=1.0)
    assert result.ok is False
    assert result.status == 500


@pytest.mark.asyncio
async def test_promise_request_timeout_has_no_status(make_session) -> None:
    env = HostEnvironment(http_session=make_session(exc=TimeoutError()))
    result = await send_request(TransportKind.PROMISE_REQUEST, env, "u", "p")
    assert result.ok is False
    assert result.status is None
    assert result.error == "TimeoutError"


@pytest.mark.asyncio
async def test_raising_beacon_becomes_failed_result() -> None:
    def _beacon(url: str, payload: str) -> bool:
        raise OSError("beacon quota exceeded")

    result = await send_request(TransportKind.BEACON, HostEnvironment(beacon=_beacon), "u", "p")
    assert result.ok is False
    assert result.status is None
    assert "beacon quota exceeded" in (result.error or "")


@pytest.mark.asyncio
async def test_raising_callback_send_becomes_failed_result(make_callback_request) -> None:
    request = make_callback_request()

    def _send(data: str) -> None:
        raise RuntimeError("socket closed")

    request.send = _send
    env = HostEnvironment(callback_request_factory=lambda: request)

    result = await send_request(TransportKind.CALLBACK_REQUEST, env, "u", "p")
    assert result.ok is False
    assert result.status is None
    assert "socket closed" in (result.error or "")
