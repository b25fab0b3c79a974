from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

from .codec import DecodeError, FieldCodec
from .roles import can_view

if TYPE_CHECKING:
    from fields.models import Actor, FieldConfig


logger = logging.getLogger(__name__)

FetchOriginal = Callable[[str], Optional[str]]


def resolve_write_value(
    codec: FieldCodec,
    submitted: Optional[str],
    actor: "Actor",
    config: "FieldConfig",
    fetch_original: FetchOriginal,
    *,
    enforce_roles: bool = True,
) -> Optional[str]:
    """Return the value the host should persist for a submitted field value.

    Rules:
    - Encryption off: store plaintext. A value still carrying the blob tag
      (encryption was just switched off) is decrypted first.
    - Encryption on, actor may not view the field: the submission is dropped.
      The currently stored value is fetched via `fetch_original(config.key)`
      and re-encrypted unchanged. No error is raised.
    - Encryption on, actor may view the field (or `enforce_roles` is False for
      programmatic saves): the submitted value is encrypted.

    `fetch_original` is only called on the dropped-submission path.

    Raises:
    - DecodeError if a tagged original value, or a tagged submission on a
      field with encryption off, cannot be decrypted.
    """
    if not config.is_encrypted:
        return codec.decode(submitted)

    if enforce_roles and not can_view(actor, config):
        logger.info(
            "Discarding submitted value for encrypted field %r: actor lacks a visible role",
            config.key,
        )
        original = fetch_original(config.key)
        # Hosts may hand back either the stored blob or the loaded plaintext
        return codec.encode(codec.decode(original))

    if codec.is_encoded(submitted):
        # A blob from this codec is stored from its plaintext, not wrapped twice.
        # Text that merely starts with the tag is encrypted as typed.
        try:
            submitted = codec.decode(submitted)
        except DecodeError:
            pass
    return codec.encode(submitted)
