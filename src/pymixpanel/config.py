"""Client configuration for pymixpanel."""

from __future__ import annotations

import dataclasses
import enum
import os
from typing import TYPE_CHECKING, Any

from pymixpanel._constants import BASE_URL, NON_RETRYABLE_STATUS
from pymixpanel.exceptions import MixpanelConfigError

if TYPE_CHECKING:
    from pymixpanel._dispatch import ErrorHandler
    from pymixpanel._queue import QueueSend


class DebugLevel(enum.IntEnum):
    """Cumulative debug levels.

    Each level includes the effects of the levels below it.
    """

    OFF = 0
    LOG = 1
    """Log every outgoing request."""
    VERBOSE = 2
    """Ask the collector for verbose errors and surface them."""
    DRY_RUN = 3
    """Never send anything."""


@dataclasses.dataclass(frozen=True)
class MixpanelConfig:
    """Client configuration.

    Parameters
    ----------
    token : str
        Mixpanel project token, sent with every request.
    base_url : str
        Collector root URL. Always normalized to end with ``/``.
    debug : DebugLevel or int
        Debug level from 0 to 3, see :class:`DebugLevel`.
    error_handler : callable or None
        Called as ``handler(error, method, data)`` for every failed
        request.  May be sync or async.  ``None`` selects the default
        handler, which logs the failure.
    queue_send : callable or None
        Called as ``queue_send(execute, method, data)`` in place of
        sending.  ``None`` selects the default gate, which sends
        immediately.
    non_retryable_status : int
        Status attached to failures the collector will never accept.
    """

    token: str
    base_url: str = BASE_URL
    debug: DebugLevel = DebugLevel.OFF
    error_handler: ErrorHandler | None = None
    queue_send: QueueSend | None = None
    non_retryable_status: int = NON_RETRYABLE_STATUS

    def __post_init__(self) -> None:
        if not self.token or not self.token.strip():
            raise MixpanelConfigError("token must be non-empty")
        try:
            level = DebugLevel(int(self.debug))
        except ValueError as exc:
            raise MixpanelConfigError(f"debug must be between 0 and 3, got {self.debug!r}") from exc
        object.__setattr__(self, "debug", level)
        if not self.base_url.endswith("/"):
            object.__setattr__(self, "base_url", self.base_url + "/")

    @classmethod
    def from_env(cls, **overrides: Any) -> MixpanelConfig:
        """Create configuration from environment variables.

        Reads ``MIXPANEL_TOKEN`` and the optional ``MIXPANEL_BASE_URL``,
        ``MIXPANEL_DEBUG`` and ``MIXPANEL_NON_RETRYABLE_STATUS``.
        Explicit keyword arguments override environment values.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}
        token = env.get("MIXPANEL_TOKEN")
        if token is not None:
            config_kwargs["token"] = token
        base_url = env.get("MIXPANEL_BASE_URL")
        if base_url is not None:
            config_kwargs["base_url"] = base_url

        debug_env = env.get("MIXPANEL_DEBUG")
        if debug_env is not None and "debug" not in overrides:
            try:
                config_kwargs["debug"] = int(debug_env)
            except ValueError as exc:
                raise MixpanelConfigError(f"MIXPANEL_DEBUG must be an integer, got {debug_env!r}") from exc

        status_env = env.get("MIXPANEL_NON_RETRYABLE_STATUS")
        if status_env is not None and "non_retryable_status" not in overrides:
            try:
                config_kwargs["non_retryable_status"] = int(status_env)
            except ValueError as exc:
                raise MixpanelConfigError(
                    f"MIXPANEL_NON_RETRYABLE_STATUS must be an integer, got {status_env!r}"
                ) from exc

        config_kwargs.update(overrides)
        if "token" not in config_kwargs:
            raise MixpanelConfigError("MIXPANEL_TOKEN is not set")

        return cls(**config_kwargs)
