"""High-level async client for the Mixpanel ingestion API."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from typing import Any

import aiohttp

from pymixpanel._constants import IDENTIFY_EVENT
from pymixpanel._dispatch import CRITICAL_METHODS, Dispatcher, Method, PendingRequest
from pymixpanel._queue import QueueSend, default_queue_send
from pymixpanel._transport import HostEnvironment
from pymixpanel.config import MixpanelConfig
from pymixpanel.exceptions import MixpanelError
from pymixpanel.models import SuperProps, UserProps
from pymixpanel.state import StateStore
from pymixpanel.visibility import PageVisibility, page_visibility

_logger = logging.getLogger(__name__)


class MixpanelClient:
    """Async client for tracking events and updating user profiles.

    Usage::

        async with MixpanelClient(MixpanelConfig(token="...")) as client:
            client.set_state({"$device_id": device_id})
            client.track("Signed up", {"plan": "pro"})
            client.set_user(user_id)
            await client.set_user_props({"$email": email})

    ``track`` and ``set_user`` are fire and forget; their failures only
    reach the configured error handler.  ``set_user_props`` returns a
    future the caller is expected to await.

    Without an explicit *environment* the client opens its own
    :class:`aiohttp.ClientSession` on enter and closes it on exit.
    """

    def __init__(
        self,
        config: MixpanelConfig,
        *,
        environment: HostEnvironment | None = None,
        visibility: PageVisibility | None = None,
    ) -> None:
        self._config = config
        self._environment = environment
        self._owned_session: aiohttp.ClientSession | None = None
        self._visibility = visibility if visibility is not None else page_visibility
        self._state = StateStore()
        self._queue_send: QueueSend = config.queue_send or default_queue_send
        self._dispatcher: Dispatcher | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._gated: set[asyncio.Future[Any]] = set()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> MixpanelClient:
        self._loop = asyncio.get_running_loop()
        if self._environment is None:
            self._owned_session = aiohttp.ClientSession()
            self._environment = HostEnvironment(http_session=self._owned_session)
        self._dispatcher = Dispatcher(self._config, self._environment, visibility=self._visibility)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.flush()
        if self._owned_session is not None:
            await self._owned_session.close()
            self._owned_session = None
            self._environment = None
        self._dispatcher = None
        self._loop = None

    async def flush(self) -> None:
        """Wait for every gated send handed to the event loop so far."""
        while self._gated:
            await asyncio.wait(list(self._gated))

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> dict[str, Any]:
        """A copy of the current super-properties."""
        return self._state.super_props

    @property
    def distinct_id(self) -> str | None:
        return self._state.distinct_id

    def set_state(self, state: Mapping[str, Any] | SuperProps) -> None:
        """Set properties to send with every track request."""
        self._state.set_state(state)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def track(self, event: str, props: Mapping[str, Any] | None = None) -> None:
        """Track *event* with the super-properties and *props*."""
        properties = {**self._state.super_props, **(props or {}), "token": self._config.token}
        self._enqueue(Method.TRACK, {"event": event, "properties": properties})

    def set_user(self, user_id: str | None) -> None:
        """Identify the current user, or forget them with ``None``.

        When a device id is known, an ``$identify`` event links the
        anonymous device to the new user.
        """
        self._state.set_user_id(user_id)
        device_id = self._state.device_id
        if user_id and device_id:
            self._enqueue(
                Method.SET_USER,
                {
                    "event": IDENTIFY_EVENT,
                    "properties": {
                        "$identified_id": user_id,
                        "$anon_id": device_id,
                        "token": self._config.token,
                    },
                },
            )

    def set_user_props(
        self,
        props: Mapping[str, Any] | UserProps,
        user_id: str | None = None,
    ) -> asyncio.Future[None]:
        """Set profile properties of the current user, or of *user_id*.

        Raises :class:`~pymixpanel.exceptions.MixpanelUnidentifiedUserError`
        right away when no user is known.  The returned future fails only
        when the error handler raises.
        """
        resolved = self._state.resolve_user_id(user_id)
        user_props = props if isinstance(props, UserProps) else UserProps.from_wire(props)
        return self._enqueue(
            Method.SET_USER_PROPS,
            {
                "$token": self._config.token,
                "$distinct_id": resolved,
                "$set": user_props.to_wire(),
            },
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_dispatcher(self) -> tuple[Dispatcher, asyncio.AbstractEventLoop]:
        if self._dispatcher is None or self._loop is None:
            raise MixpanelError("Client not initialized. Use 'async with MixpanelClient(...) as client:'")
        return self._dispatcher, self._loop

    def _enqueue(self, method: Method, data: dict[str, Any]) -> asyncio.Future[None]:
        """Hand a new request to the queue gate."""
        dispatcher, loop = self._require_dispatcher()
        request = PendingRequest.create(method, data)
        result: asyncio.Future[None] = loop.create_future()
        critical = request.method in CRITICAL_METHODS

        async def execute() -> None:
            try:
                outcome = await dispatcher.dispatch(request)
            except Exception as exc:
                if not result.done():
                    if critical:
                        result.set_exception(exc)
                    else:
                        result.set_result(None)
                raise
            if outcome.must_fail:
                assert outcome.error is not None  # noqa: S101
                if result.done():
                    raise outcome.error
                # The caller awaiting the future owns the failure from here.
                result.set_exception(outcome.error)
            elif not result.done():
                result.set_result(None)

        gated = self._queue_send(execute, request.method.value, request.data)
        if inspect.isawaitable(gated):
            task = asyncio.ensure_future(gated, loop=loop)
            self._gated.add(task)
            task.add_done_callback(self._on_gated_done)
        return result

    def _on_gated_done(self, task: asyncio.Future[Any]) -> None:
        self._gated.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Queued Mixpanel send raised", exc_info=exc)
