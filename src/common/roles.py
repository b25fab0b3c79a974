from __future__ import annotations

import json
from typing import TYPE_CHECKING, Iterable, List, Optional, Set, Union

if TYPE_CHECKING:
    from fields.models import Actor, FieldConfig


Roles = Set[str]

DEFAULT_VISIBLE_ROLES = frozenset({"administrator"})


def _clean(tok: str) -> str:
    tok = tok.strip()
    if (tok.startswith('"') and tok.endswith('"')) or (tok.startswith("'") and tok.endswith("'")):
        tok = tok[1:-1].strip()
    return tok


def parse_roles(raw: Optional[Union[str, Iterable[str]]]) -> Roles:
    """Parse a role set from a JSON array, CSV text or an iterable of strings.

    Accepts either:
    - JSON array: e.g., '["administrator", "editor"]'
    - CSV (commas/newlines/spaces treated as separators): "administrator, editor"
    - Any iterable of role ids (list, set, tuple)

    Role ids are opaque; they are only stripped, never case-folded.
    Empty or invalid input yields an empty set.
    """
    if raw is None:
        return set()

    if isinstance(raw, str):
        # Try JSON first
        try:
            data = json.loads(raw)
        except ValueError:
            data = None
        if isinstance(data, list):
            return parse_roles(data)

        # Fallback to CSV parsing; split on commas/newlines/spaces
        norm = raw.replace("\n", ",").replace(" ", ",")
        items: List[str] = [_clean(tok) for tok in norm.split(",")]
        return {tok for tok in items if tok}

    if not isinstance(raw, Iterable):
        return set()

    out: Roles = set()
    for item in raw:
        if isinstance(item, str):
            s = _clean(item)
            if s:
                out.add(s)
    return out


def can_view(actor: "Actor", config: "FieldConfig") -> bool:
    """Return True if the actor holds at least one of the field's visible roles.

    Rules:
    - Membership test only; order and duplicates are irrelevant.
    - An empty `visible_roles` set denies everyone.
    """
    return not actor.roles.isdisjoint(config.visible_roles)
