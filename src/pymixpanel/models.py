"""Property models for super-properties and user profiles.

Mixpanel reserves ``$``-prefixed keys for its own properties.  The
models expose them as snake_case fields with ``$`` aliases, and accept
any additional custom keys.  Dumps always use the wire names::

    >>> SuperProps(device_id="D1", plan="pro").to_wire()
    {'$device_id': 'D1', 'plan': 'pro'}
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _PropsModel(BaseModel):
    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Return the explicitly set properties keyed by wire name."""
        extra = self.model_extra or {}
        wire: dict[str, Any] = {}
        for name, field in type(self).model_fields.items():
            if name not in self.model_fields_set:
                continue
            value = getattr(self, name)
            # A custom key spelled like a field name also lands in the set fields.
            if name in extra and value is None:
                continue
            wire[field.alias or name] = value
        wire.update(extra)
        return wire

    @classmethod
    def from_wire(cls, props: Mapping[str, Any]) -> Self:
        """Validate a mapping keyed by wire name.

        Keys are taken literally: ``"name"`` stays a custom property and
        only ``"$name"`` fills the reserved field.
        """
        return cls.model_validate(dict(props), by_name=False)


class SuperProps(_PropsModel):
    """Properties sent with every tracked event."""

    app_version_string: str | None = Field(default=None, alias="$app_version_string")
    os_version: str | None = Field(default=None, alias="$os_version")
    model: str | None = Field(default=None, alias="$model")
    """Device model name (eg: ``"iPad 3,4"``)."""
    device_id: str | None = Field(default=None, alias="$device_id")
    """Device UUID generated and persisted by the host."""
    current_url: str | None = Field(default=None, alias="$current_url")


class UserProps(_PropsModel):
    """Profile properties, see Mixpanel's reserved profile properties."""

    _RESERVED_KEYS: ClassVar[frozenset[str]] = frozenset({"bucket", "distinct_id"})

    name: str | None = Field(default=None, alias="$name")
    first_name: str | None = Field(default=None, alias="$first_name")
    last_name: str | None = Field(default=None, alias="$last_name")
    referring_domain: str | None = Field(default=None, alias="$referring_domain")
    avatar: str | None = Field(default=None, alias="$avatar")
    """URL of a gif, jpg, jpeg, or png for the profile picture."""
    email: str | None = Field(default=None, alias="$email")
    """Required for sending email from Mixpanel."""
    phone: str | None = Field(default=None, alias="$phone")
    """Required for sending SMS from Mixpanel; must start with ``+``."""

    @model_validator(mode="before")
    @classmethod
    def _reject_reserved_keys(cls, values: Any) -> Any:
        if isinstance(values, dict):
            reserved = cls._RESERVED_KEYS.intersection(values)
            if reserved:
                raise ValueError(f"reserved profile properties cannot be set: {sorted(reserved)}")
        return values
