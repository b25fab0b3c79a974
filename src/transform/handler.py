from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from common.codec import DecodeError, FieldCodec
from common.policy import FetchOriginal, resolve_write_value
from common.roles import can_view
from fields.models import (
    REDACTED_MESSAGE,
    Actor,
    FieldConfig,
    PresentationResult,
    PresentationState,
)


logger = logging.getLogger(__name__)

ConfigLike = Union[FieldConfig, Mapping[str, Any]]


def _as_config(config: ConfigLike) -> FieldConfig:
    if isinstance(config, FieldConfig):
        return config
    return FieldConfig.from_settings(config)


def _no_original(_key: str) -> Optional[str]:
    return None


class FieldTransformer:
    """
    Entry point the host calls around persistence and rendering of field values.

    Usage
    - `on_save(value, config, actor, fetch_original)` before writing a value.
    - `on_load(value)` after reading a value, before any display logic.
    - `present(value, config, actor)` before rendering a loaded value to a user.

    Calls are independent and may run concurrently; the codec's key is the
    only shared state and never changes.

    Decode failures are not handled here. Whether a failing save is aborted or
    stored another way is the host's decision.
    """

    def __init__(self, codec: FieldCodec) -> None:
        self._codec = codec

    # -------- Construction helpers --------
    @classmethod
    def from_env(cls) -> "FieldTransformer":
        return cls(FieldCodec.from_env())

    @property
    def codec(self) -> FieldCodec:
        return self._codec

    # -------- Core operations --------
    def on_save(
        self,
        value: Optional[str],
        config: ConfigLike,
        actor: Actor,
        fetch_original: Optional[FetchOriginal] = None,
        *,
        enforce_roles: bool = True,
    ) -> Optional[str]:
        """Transform a submitted value into the value to persist.

        `enforce_roles=False` is meant for system saves (imports, migrations)
        that have no interactive user behind them.
        """
        cfg = _as_config(config)
        try:
            return resolve_write_value(
                self._codec,
                value,
                actor,
                cfg,
                fetch_original or _no_original,
                enforce_roles=enforce_roles,
            )
        except DecodeError as ex:
            logger.warning("Could not decrypt value while saving field %r: %s", cfg.key, ex)
            raise

    def on_load(
        self,
        value: Optional[str],
        config: Optional[ConfigLike] = None,
        actor: Optional[Actor] = None,
    ) -> Optional[str]:
        """Return the true stored value; untagged values pass through.

        No visibility filtering happens here, see `present()`.
        """
        try:
            return self._codec.decode(value)
        except DecodeError as ex:
            key = _as_config(config).key if config is not None else None
            logger.warning("Could not decrypt stored value for field %r: %s", key, ex)
            raise

    def present(self, value: Optional[str], config: ConfigLike, actor: Actor) -> PresentationResult:
        """Decide how a loaded (plaintext) value is shown to `actor`."""
        cfg = _as_config(config)
        if not cfg.is_encrypted:
            return PresentationResult(state=PresentationState.PLAIN, value=value)
        if not can_view(actor, cfg):
            return PresentationResult(
                state=PresentationState.REDACTED,
                message=REDACTED_MESSAGE,
                encrypted=True,
            )
        if cfg.hide_value:
            return PresentationResult(
                state=PresentationState.MASKED,
                value=value,
                reveal=True,
                encrypted=True,
            )
        return PresentationResult(state=PresentationState.PLAIN, value=value, encrypted=True)
