from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional, Set

from pydantic import BaseModel, Field, field_validator

from common.roles import DEFAULT_VISIBLE_ROLES, parse_roles
from common.settings import DEFAULT_PREFIX


# Field types whose values the encryption settings apply to
ENCRYPTABLE_FIELD_TYPES = frozenset({"text", "textarea"})

REDACTED_MESSAGE = "You do not have permission to view this field."


def setting_name(setting: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Return the prefixed name under which a field record stores `setting`."""
    return f"{prefix}{setting}"


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


class FieldConfig(BaseModel):
    """
    Encryption settings of a single form field, supplied by the host.

    Fields
    - key: stable identifier the host uses to re-fetch the persisted value.
    - name/type: descriptive attributes copied from the host's field record.
    - is_encrypted: encrypt the value before it is stored.
    - hide_value: render the value behind a reveal action for privileged viewers.
    - visible_roles: roles allowed to view (and edit) the value.

    Notes
    - Read-only to the transform service; the host owns these settings.
    """

    key: str = Field(default="", description="Stable field identifier")
    name: Optional[str] = Field(default=None, description="Field name")
    type: str = Field(default="text", description="Host field type")
    is_encrypted: bool = Field(default=False, description="Encrypt the value at rest")
    hide_value: bool = Field(default=False, description="Require a reveal action to show the value")
    visible_roles: Set[str] = Field(
        default_factory=lambda: set(DEFAULT_VISIBLE_ROLES),
        description="Roles allowed to view the decrypted value",
    )

    model_config = {"frozen": True}

    @field_validator("visible_roles", mode="before")
    @classmethod
    def _coerce_roles(cls, v: Any) -> Set[str]:
        return parse_roles(v)

    @classmethod
    def from_settings(cls, field: Mapping[str, Any], prefix: str = DEFAULT_PREFIX) -> "FieldConfig":
        """Build a config from a host field record with prefixed encryption settings.

        Missing settings fall back to: not encrypted, not hidden, visible to
        administrators. Settings on non-encryptable field types are ignored.
        """
        ftype = str(field.get("type") or "text")
        data: dict = {
            "key": str(field.get("key") or ""),
            "name": field.get("name"),
            "type": ftype,
        }
        if ftype in ENCRYPTABLE_FIELD_TYPES:
            data["is_encrypted"] = _as_bool(field.get(setting_name("is_encrypted", prefix), False))
            data["hide_value"] = _as_bool(field.get(setting_name("hide_value", prefix), False))
            roles = field.get(setting_name("visible_roles", prefix))
            if roles is not None:
                data["visible_roles"] = roles
        return cls.model_validate(data)


class Actor(BaseModel):
    """The principal on whose behalf a transform call is made. Never persisted."""

    roles: Set[str] = Field(default_factory=set, description="Role ids held by the actor")
    id: Optional[str] = Field(default=None, description="Host user id, informational only")

    model_config = {"frozen": True}

    @field_validator("roles", mode="before")
    @classmethod
    def _coerce_roles(cls, v: Any) -> Set[str]:
        return parse_roles(v)

    @classmethod
    def from_roles(cls, roles: Any, *, id: Optional[str] = None) -> "Actor":
        return cls(roles=roles, id=id)


class PresentationState(str, Enum):
    PLAIN = "plain"
    REDACTED = "redacted"
    MASKED = "masked"


class PresentationResult(BaseModel):
    """How the host should render a field value for one viewer."""

    state: PresentationState
    value: Optional[str] = None
    message: Optional[str] = None
    reveal: bool = Field(default=False, description="Render the value behind a reveal action")
    encrypted: bool = Field(default=False, description="The field is stored encrypted")

    @property
    def reveal_label(self) -> Optional[str]:
        if self.state is not PresentationState.MASKED:
            return None
        return "Click to Show" if self.value else "Click to Add"
