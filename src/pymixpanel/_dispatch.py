"""Request construction, sending and failure classification.

One :class:`PendingRequest` is created per public call.  The
:class:`Dispatcher` turns it into a form-encoded POST, hands it to the
transport picked for the current visibility state, and reduces the
result to a :class:`DispatchOutcome`.

Failures are offered to the configured error handler.  Whether a failure
the handler refuses to absorb reaches the caller depends on the method:
profile updates are awaited by callers and fail with the handler's
exception, everything else is best effort and never fails its caller.
"""

from __future__ import annotations

import inspect
import logging
import traceback
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pymixpanel._constants import PATHS_BY_METHOD
from pymixpanel._encoding import encode_body
from pymixpanel._redact import redact_for_log
from pymixpanel._transport import (
    HostEnvironment,
    TransportKind,
    TransportResult,
    select_transport,
    send_request,
)
from pymixpanel.config import DebugLevel, MixpanelConfig
from pymixpanel.exceptions import MixpanelRequestError
from pymixpanel.visibility import PageVisibility, page_visibility

_logger = logging.getLogger(__name__)

ErrorHandler = Callable[[MixpanelRequestError, str, dict[str, Any]], Awaitable[None] | None]


class Method(StrEnum):
    TRACK = "track"
    SET_USER = "setUser"
    SET_USER_PROPS = "setUserProps"

    @property
    def path(self) -> str:
        return PATHS_BY_METHOD[self.value]


#: Methods whose caller awaits the result.
CRITICAL_METHODS: frozenset[Method] = frozenset({Method.SET_USER_PROPS})


class DispatchStatus(StrEnum):
    SENT = "sent"
    DRY_RUN = "dry_run"
    HANDLED = "handled"
    """The request failed and the failure was absorbed."""
    FAILED = "failed"
    """The request failed and the caller must fail too."""


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    status: DispatchStatus
    error: BaseException | None = None

    @property
    def must_fail(self) -> bool:
        return self.status is DispatchStatus.FAILED


def _capture_call_site() -> traceback.StackSummary:
    # Drop this module's frames and generated dataclass code so the
    # summary ends at the client method that created the request.
    stack = traceback.extract_stack()
    return traceback.StackSummary.from_list(
        [frame for frame in stack if frame.filename != __file__ and not frame.filename.startswith("<")]
    )


@dataclass(frozen=True, slots=True)
class PendingRequest:
    method: Method
    data: dict[str, Any]
    call_site: traceback.StackSummary = field(default_factory=_capture_call_site, compare=False, repr=False)

    @classmethod
    def create(cls, method: str | Method, data: dict[str, Any]) -> PendingRequest:
        """Create a request, raising ``ValueError`` for an unknown method."""
        return cls(method=Method(method), data=data)


@dataclass(frozen=True, slots=True)
class OutboundRequest:
    url: str
    payload: str
    inspect_response: bool


def default_error_handler(error: MixpanelRequestError, method: str, data: dict[str, Any]) -> None:
    """Log the failure and treat it as handled."""
    _logger.warning(
        "Mixpanel %s request failed (status=%s): %s %s",
        method,
        error.status,
        error,
        redact_for_log(data),
    )
    if error.call_site is not None:
        _logger.debug("Request created at:\n%s", error.format_call_site())


class Dispatcher:
    """Sends :class:`PendingRequest` values for one client."""

    def __init__(
        self,
        config: MixpanelConfig,
        environment: HostEnvironment,
        *,
        visibility: PageVisibility = page_visibility,
    ) -> None:
        self._config = config
        self._environment = environment
        self._visibility = visibility
        self._error_handler: ErrorHandler = config.error_handler or default_error_handler

    @property
    def debug(self) -> DebugLevel:
        return self._config.debug

    def build(self, request: PendingRequest) -> OutboundRequest:
        """Build the URL and encoded body for *request*."""
        body: dict[str, Any] = {"data": request.data}
        verbose = self.debug >= DebugLevel.VERBOSE
        if verbose:
            body["verbose"] = 1
        return OutboundRequest(
            url=self._config.base_url + request.method.path,
            payload=encode_body(body),
            inspect_response=verbose,
        )

    async def dispatch(self, request: PendingRequest) -> DispatchOutcome:
        """Send *request* once and classify the outcome."""
        if self.debug >= DebugLevel.LOG:
            _logger.info("Mixpanel %s %s", request.method, redact_for_log(request.data))
        if self.debug >= DebugLevel.DRY_RUN:
            return DispatchOutcome(DispatchStatus.DRY_RUN)

        outbound = self.build(request)
        kind = select_transport(self._environment, self._visibility)
        result = await send_request(
            kind,
            self._environment,
            outbound.url,
            outbound.payload,
            inspect_response=outbound.inspect_response and kind is not TransportKind.BEACON,
        )

        error = self._classify(request, outbound, result)
        if error is None:
            return DispatchOutcome(DispatchStatus.SENT)
        return await self._handle_failure(request, error)

    def _classify(
        self,
        request: PendingRequest,
        outbound: OutboundRequest,
        result: TransportResult,
    ) -> MixpanelRequestError | None:
        sentinel = self._config.non_retryable_status

        def _error(message: str, status: int | None) -> MixpanelRequestError:
            return MixpanelRequestError(
                message,
                method=request.method.value,
                data=request.data,
                retry=lambda: self.dispatch(request),
                status=status,
                non_retryable_status=sentinel,
                call_site=request.call_site,
            )

        if result.kind is TransportKind.BEACON:
            if result.ok:
                return None
            return _error(f"Network request failed: {outbound.url} ({result.error})", sentinel)

        if result.status is None:
            return _error(f"Network request failed: {outbound.url} ({result.error})", None)

        if not result.ok:
            detail = f": {result.error}" if result.error else ""
            return _error(f"HTTP {result.status} from {request.method.path}{detail}", result.status)

        if outbound.inspect_response and isinstance(result.body, dict):
            business_error = result.body.get("error")
            if business_error:
                return _error(str(business_error), sentinel)

        return None

    async def _handle_failure(self, request: PendingRequest, error: MixpanelRequestError) -> DispatchOutcome:
        try:
            handled = self._error_handler(error, request.method.value, request.data)
            if inspect.isawaitable(handled):
                await handled
        except Exception as exc:
            if request.method in CRITICAL_METHODS:
                return DispatchOutcome(DispatchStatus.FAILED, exc)
            _logger.exception("Error handler raised for best-effort %s request", request.method)
        return DispatchOutcome(DispatchStatus.HANDLED, error)
