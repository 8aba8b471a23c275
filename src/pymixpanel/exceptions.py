"""Custom exception hierarchy for pymixpanel."""

from __future__ import annotations

import traceback
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pymixpanel._dispatch import DispatchOutcome


class MixpanelError(Exception):
    """Base exception for all pymixpanel errors."""


class MixpanelConfigError(MixpanelError):
    """Invalid or missing configuration, or no usable transport."""


class MixpanelUnidentifiedUserError(MixpanelError):
    """Profile update requested before any user was identified."""


class MixpanelRequestError(MixpanelError):
    """A request to the collector failed.

    Network failures leave ``status`` unset.  HTTP failures carry the
    response status.  Failures the collector will never accept (refused
    beacon payloads, ``error`` fields in verbose responses) carry the
    configured non-retryable sentinel status.

    ``retry()`` returns a coroutine that performs the same dispatch again
    (same path, same encoded body).
    """

    def __init__(
        self,
        message: str,
        *,
        method: str,
        data: dict[str, Any],
        retry: Callable[[], Awaitable[DispatchOutcome]],
        status: int | None = None,
        non_retryable_status: int | None = None,
        call_site: traceback.StackSummary | None = None,
    ) -> None:
        self.status = status
        self.method = method
        self.data = data
        self.retry = retry
        self.non_retryable_status = non_retryable_status
        self.call_site = call_site
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether retrying the same request has a chance to succeed."""
        if self.status is None:
            return True
        if self.status == self.non_retryable_status:
            return False
        return self.status == 429 or self.status >= 500

    def format_call_site(self) -> str:
        """Render the stack captured when the request was created."""
        if self.call_site is None:
            return ""
        return "".join(self.call_site.format())
