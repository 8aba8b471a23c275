"""Process-wide page visibility.

Hosts that can be backgrounded (webviews, mobile or desktop shells)
install a :class:`VisibilitySource` once at startup.  While the host
reports ``hidden``, requests go out through the beacon transport, which
is the only mechanism that survives the page being torn down.

Without an installed source the page is considered visible.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Protocol

from pymixpanel.exceptions import MixpanelConfigError

_logger = logging.getLogger(__name__)


class VisibilityState(StrEnum):
    VISIBLE = "visible"
    HIDDEN = "hidden"


class VisibilitySource(Protocol):
    """Host-provided view of the page's visibility."""

    @property
    def visibility_state(self) -> str:
        ...

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register *callback* to run after every visibility change."""
        ...


class PageVisibility:
    """Owner of the hidden flag.

    The flag is written in exactly two places: once by :meth:`install`,
    and afterwards only by the change callback it subscribes.
    """

    def __init__(self) -> None:
        self._hidden = False
        self._source: VisibilitySource | None = None

    @property
    def hidden(self) -> bool:
        return self._hidden

    def install(self, source: VisibilitySource) -> None:
        """Read *source* once and follow its change notifications."""
        if self._source is not None:
            raise MixpanelConfigError("A visibility source is already installed")
        self._source = source
        self._hidden = source.visibility_state == VisibilityState.HIDDEN
        source.add_listener(self._on_visibility_change)
        _logger.debug("Visibility source installed (hidden=%s)", self._hidden)

    def _on_visibility_change(self) -> None:
        assert self._source is not None  # noqa: S101
        self._hidden = self._source.visibility_state == VisibilityState.HIDDEN


page_visibility = PageVisibility()
"""The process-wide instance shared by every client."""


def install_visibility_source(source: VisibilitySource) -> None:
    """Install *source* on the process-wide :data:`page_visibility`."""
    page_visibility.install(source)
