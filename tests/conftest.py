from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from pymixpanel.visibility import PageVisibility, VisibilityState


class FakeResponse:
    def __init__(self, status: int, body: Any) -> None:
        self.status = status
        self._body = body

    async def json(self, content_type: str | None = None) -> Any:
        return self._body

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class FakeSession:
    """Stands in for aiohttp.ClientSession.post."""

    def __init__(self, status: int = 200, body: Any = None, exc: Exception | None = None) -> None:
        self.status = status
        self.body = {"status": 1} if body is None else body
        self.exc = exc
        self.calls: list[tuple[str, str, dict[str, str]]] = []

    def post(self, url: str, *, data: str, headers: dict[str, str]) -> FakeResponse:
        self.calls.append((url, data, headers))
        if self.exc is not None:
            raise self.exc
        return FakeResponse(self.status, self.body)


class FakeBeacon:
    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.calls: list[tuple[str, str]] = []

    def __call__(self, url: str, payload: str) -> bool:
        self.calls.append((url, payload))
        return self.accept


class FakeCallbackRequest:
    """XMLHttpRequest-shaped double that completes inside send()."""

    def __init__(self, status: int = 200, response: Any = None, fail: bool = False) -> None:
        self.on_load: Callable[[], None] | None = None
        self.on_error: Callable[[], None] | None = None
        self.response = response
        self.response_type = ""
        self.status = status
        self.fail = fail
        self.opened: tuple[str, str] | None = None
        self.headers: dict[str, str] = {}
        self.sent: str | None = None

    def open(self, method: str, url: str) -> None:
        self.opened = (method, url)

    def set_request_header(self, header: str, value: str) -> None:
        self.headers[header] = value

    def send(self, data: str) -> None:
        self.sent = data
        callback = self.on_error if self.fail else self.on_load
        assert callback is not None
        callback()


class FakeVisibilitySource:
    def __init__(self, state: str = VisibilityState.VISIBLE) -> None:
        self.visibility_state = state
        self._listeners: list[Callable[[], None]] = []

    def add_listener(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def change(self, state: str) -> None:
        self.visibility_state = state
        for listener in self._listeners:
            listener()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def beacon() -> FakeBeacon:
    return FakeBeacon()


@pytest.fixture
def visible() -> PageVisibility:
    return PageVisibility()


@pytest.fixture
def hidden() -> PageVisibility:
    visibility = PageVisibility()
    visibility.install(FakeVisibilitySource(VisibilityState.HIDDEN))
    return visibility


@pytest.fixture
def make_session() -> Callable[..., FakeSession]:
    return FakeSession


@pytest.fixture
def make_callback_request() -> Callable[..., FakeCallbackRequest]:
    return FakeCallbackRequest


@pytest.fixture
def make_visibility_source() -> Callable[..., FakeVisibilitySource]:
    return FakeVisibilitySource
