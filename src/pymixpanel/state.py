"""In-memory super-property and identity state.

This is the only component allowed to mutate super-properties.  Every
mutation goes through :meth:`StateStore.set_state`, which keeps
``distinct_id`` derived from the user and device identifiers.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from pymixpanel.exceptions import MixpanelUnidentifiedUserError
from pymixpanel.models import SuperProps

USER_ID_KEY = "$user_id"
DEVICE_ID_KEY = "$device_id"
DISTINCT_ID_KEY = "distinct_id"


def _as_patch(partial: Mapping[str, Any] | SuperProps) -> dict[str, Any]:
    if isinstance(partial, SuperProps):
        return partial.to_wire()
    return dict(partial)


class StateStore:
    """Super-properties merged into every tracked event.

    Merges are shallow: keys in a patch overwrite, other keys persist, and
    a ``None`` value removes the key.
    """

    def __init__(self, initial: Mapping[str, Any] | SuperProps | None = None) -> None:
        self._props: dict[str, Any] = {}
        if initial is not None:
            self.set_state(initial)

    @property
    def super_props(self) -> dict[str, Any]:
        """A copy of the current super-properties, ``distinct_id`` included."""
        return copy.deepcopy(self._props)

    @property
    def user_id(self) -> str | None:
        return self._props.get(USER_ID_KEY)

    @property
    def device_id(self) -> str | None:
        return self._props.get(DEVICE_ID_KEY)

    @property
    def distinct_id(self) -> str | None:
        return self._props.get(DISTINCT_ID_KEY)

    def set_state(self, partial: Mapping[str, Any] | SuperProps) -> None:
        """Shallow-merge *partial* and recompute ``distinct_id``."""
        for key, value in _as_patch(partial).items():
            if value is None:
                self._props.pop(key, None)
            else:
                self._props[key] = value
        self._recompute_distinct_id()

    def set_user_id(self, user_id: str | None) -> None:
        """Set the user id, or clear it for ``None`` and ``""``."""
        self.set_state({USER_ID_KEY: user_id or None})

    def resolve_user_id(self, user_id: str | None = None) -> str:
        """Return *user_id*, falling back to the identified user.

        Raises :class:`MixpanelUnidentifiedUserError` when neither exists.
        """
        resolved = user_id or self.user_id
        if not resolved:
            raise MixpanelUnidentifiedUserError("No user exists: call set_user() or pass user_id")
        return resolved

    def _recompute_distinct_id(self) -> None:
        distinct_id = self._props.get(USER_ID_KEY) or self._props.get(DEVICE_ID_KEY)
        if distinct_id:
            self._props[DISTINCT_ID_KEY] = distinct_id
        else:
            self._props.pop(DISTINCT_ID_KEY, None)
