"""pymixpanel - Lightweight async client for the Mixpanel ingestion API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pymixpanel")
except PackageNotFoundError:
    __version__ = "0+local"
from pymixpanel._dispatch import (
    DispatchOutcome,
    DispatchStatus,
    Method,
    default_error_handler,
)
from pymixpanel._queue import default_queue_send
from pymixpanel._transport import CallbackRequest, HostEnvironment, TransportKind
from pymixpanel.client import MixpanelClient
from pymixpanel.config import DebugLevel, MixpanelConfig
from pymixpanel.exceptions import (
    MixpanelConfigError,
    MixpanelError,
    MixpanelRequestError,
    MixpanelUnidentifiedUserError,
)
from pymixpanel.models import SuperProps, UserProps
from pymixpanel.visibility import (
    PageVisibility,
    VisibilitySource,
    VisibilityState,
    install_visibility_source,
    page_visibility,
)

__all__ = [
    "__version__",
    "CallbackRequest",
    "DebugLevel",
    "DispatchOutcome",
    "DispatchStatus",
    "HostEnvironment",
    "Method",
    "MixpanelClient",
    "MixpanelConfig",
    "MixpanelConfigError",
    "MixpanelError",
    "MixpanelRequestError",
    "MixpanelUnidentifiedUserError",
    "PageVisibility",
    "SuperProps",
    "TransportKind",
    "UserProps",
    "VisibilitySource",
    "VisibilityState",
    "default_error_handler",
    "default_queue_send",
    "install_visibility_source",
    "page_visibility",
]
