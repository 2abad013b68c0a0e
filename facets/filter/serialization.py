"""Compact, diff-against-default encoding of a facet's state.

A facet serializes to a group of token lists keyed by property::

    {
        "meta": ["isHidden=0", "combineBlue=and", "combineRed=or"],
        "state": ["phb=1", "xge=2"],
        "nestsHidden": ["playtest=0"],
        "options": ["extend"],
    }

Only values that differ from their defaults are written, and ``extend``
tells the reader to seed from the defaults before applying the tokens.
Marks equal to their default are left out even when other marks differ;
only the tag part lists every set mark. Nest tokens carry the actual
``0``/``1`` flag so a nest hidden by default can be written as shown.
Turning these lists into a URL fragment is left to the transport codec.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from facets.core.exceptions import InvalidMarkError
from facets.filter.models import (
    UI_META_KEYS,
    CombineMode,
    FilterMeta,
    FilterSnapshot,
    Mark,
)

if TYPE_CHECKING:
    from facets.filter.engine import Filter

logger = logging.getLogger(__name__)

PROP_META = "meta"
PROP_STATE = "state"
PROP_NESTS_HIDDEN = "nestsHidden"
PROP_OPTIONS = "options"

OPTION_EXTEND = "extend"

# Separator between compressed meta values in a tag
TAG_META_SEP = "~"

META_TOKEN_KEYS = {
    "is_hidden": "isHidden",
    "combine_blue": "combineBlue",
    "combine_red": "combineRed",
}


def split_token(token: str) -> tuple[str, str] | None:
    """Split ``key=value`` on the last ``=``; None if there is none."""
    key, sep, value = token.rpartition("=")
    if not sep:
        return None
    return key, value


def _meta_value_token(value: object) -> str:
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, CombineMode):
        return value.value
    return f"{value}"


# =============================================================================
# Encoding
# =============================================================================


def get_state_not_default(
    flt: Filter, next_state: FilterSnapshot | None = None
) -> list[tuple[str, int]]:
    """Identity/mark pairs whose mark differs from the computed default."""
    state = next_state.state if next_state is not None else flt.state
    return [
        (k, int(v))
        for k, v in state.items()
        if not k.startswith("_") and flt.get_default_state(k) != v
    ]


def get_nests_hidden_not_default(flt: Filter) -> list[tuple[str, bool]]:
    nests = flt.nests or {}
    return [
        (k, v)
        for k, v in flt.nests_hidden.items()
        if k in nests and nests[k].is_hidden != v
    ]


def get_meta_tokens(flt: Filter) -> list[str] | None:
    """Every meta value as a token, once any of them differs from default."""
    meta, default = flt.meta, flt.default_meta
    if meta == default:
        return None
    return [
        f"{META_TOKEN_KEYS[field]}={_meta_value_token(getattr(meta, field))}"
        for field in FilterMeta.model_fields
    ]


def get_compressed_meta(flt: Filter, strip_ui_keys: bool = False) -> list[str] | None:
    """Meta values in field order, or None when they all match the defaults."""
    fields = [
        f for f in FilterMeta.model_fields if not (strip_ui_keys and f in UI_META_KEYS)
    ]
    meta, default = flt.meta, flt.default_meta
    if all(getattr(meta, f) == getattr(default, f) for f in fields):
        return None
    return [_meta_value_token(getattr(meta, f)) for f in fields]


def get_sub_hashes(flt: Filter) -> dict[str, list[str]] | None:
    """Encode the live state as token lists; None when everything is default."""
    out: dict[str, list[str]] = {}

    meta_tokens = get_meta_tokens(flt)
    if meta_tokens:
        out[PROP_META] = meta_tokens

    not_default = get_state_not_default(flt)
    if not_default:
        out[PROP_STATE] = [f"{k.lower()}={v}" for k, v in not_default]

    nests_not_default = get_nests_hidden_not_default(flt)
    if nests_not_default:
        out[PROP_NESTS_HIDDEN] = [f"{k.lower()}={int(v)}" for k, v in nests_not_default]

    if not out:
        return None

    # Always extend default state
    out[PROP_OPTIONS] = [OPTION_EXTEND]
    return out


def get_filter_tag_part(flt: Filter) -> str | None:
    """Shorthand such as ``source=phb;!xge`` for content authoring.

    Once any mark differs from its default every set mark is listed, and
    non-default combine modes are appended as ``=and~or``.
    """
    not_default = get_state_not_default(flt)
    compressed_meta = get_compressed_meta(flt, strip_ui_keys=True)
    if not not_default and not compressed_meta:
        return None

    pt = ";".join(
        f"{'!' if v == Mark.EXCLUDED else ''}{k}"
        for k, v in flt.state.items()
        if not k.startswith("_") and v
    ).lower()

    parts = [
        flt.header.lower(),
        pt,
        TAG_META_SEP.join(compressed_meta) if compressed_meta else None,
    ]
    return "=".join(p for p in parts if p is not None)


def get_display_state_part(
    flt: Filter, next_state: FilterSnapshot | None = None
) -> str | None:
    """Human readable summary such as ``Source: PHB, not XGE``."""
    if not get_state_not_default(flt, next_state):
        return None

    state = next_state.state if next_state is not None else flt.state
    parts = []
    for k, v in state.items():
        if k.startswith("_") or not v:
            continue
        item = flt.get_item(k)
        if item is None:
            continue
        prefix = "not " if v == Mark.EXCLUDED else ""
        parts.append(f"{prefix}{flt.get_display_text(item)}")

    if not parts:
        return None
    return f"{flt.header}: {', '.join(parts)}"


# =============================================================================
# Decoding
# =============================================================================


def _find_key(keys: Sequence[str], lower: str) -> str | None:
    return next((k for k in keys if k.lower() == lower.lower()), None)


def _apply_meta_tokens(flt: Filter, nxt: FilterSnapshot, tokens: Sequence[str]) -> None:
    nxt.meta = flt.default_meta
    fields_by_token = {v.lower(): k for k, v in META_TOKEN_KEYS.items()}
    for token in tokens:
        parsed = split_token(token)
        field = fields_by_token.get(parsed[0].lower()) if parsed else None
        if parsed is None or field is None:
            logger.debug("Dropping meta token %r for %r", token, flt.header)
            continue
        raw = parsed[1]
        try:
            if field == "is_hidden":
                setattr(nxt.meta, field, bool(int(raw)))
            else:
                setattr(nxt.meta, field, CombineMode(raw.lower()))
        except ValueError:
            logger.debug("Dropping meta token %r for %r", token, flt.header)


def _apply_state_tokens(
    flt: Filter, nxt: FilterSnapshot, tokens: Sequence[str], is_extend: bool
) -> None:
    keys = list(nxt.state)
    for k in keys:
        nxt.state[k] = int(flt.get_default_state(k) if is_extend else Mark.IGNORED)

    for token in tokens:
        parsed = split_token(token)
        key = _find_key(keys, parsed[0]) if parsed else None
        if parsed is None or key is None:
            logger.debug("Dropping state token %r for %r", token, flt.header)
            continue
        try:
            nxt.state[key] = int(Mark.coerce(parsed[1]))
        except InvalidMarkError:
            logger.debug("Dropping state token %r for %r", token, flt.header)


def _apply_nests_hidden_tokens(
    flt: Filter, nxt: FilterSnapshot, tokens: Sequence[str]
) -> None:
    flt.mut_next_state_reset_nests_hidden(nxt)
    keys = list(flt.nests or {})
    for token in tokens:
        parsed = split_token(token)
        key = _find_key(keys, parsed[0]) if parsed else None
        if parsed is None or key is None:
            logger.debug("Dropping nest token %r for %r", token, flt.header)
            continue
        try:
            nxt.nests_hidden[key] = bool(int(parsed[1]))
        except ValueError:
            logger.debug("Dropping nest token %r for %r", token, flt.header)


def get_next_state_from_sub_hashes(
    flt: Filter, tokens: Mapping[str, Sequence[str]] | None
) -> FilterSnapshot:
    """Build a candidate next state from decoded token lists.

    Live state is left untouched; commit with
    ``Filter.set_state_from_next_state``.

    Args:
        flt: The filter the tokens belong to.
        tokens: Property to token list, or None to reset to defaults.

    Returns:
        The candidate state.
    """
    nxt = flt.get_next_state_base()

    if tokens is None:
        flt.mut_next_state_reset(nxt)
        return nxt

    options = {opt.lower() for opt in tokens.get(PROP_OPTIONS, ())}
    is_extend = OPTION_EXTEND in options

    if PROP_META in tokens:
        _apply_meta_tokens(flt, nxt, tokens[PROP_META])
    else:
        nxt.meta.combine_blue = flt.default_meta.combine_blue
        nxt.meta.combine_red = flt.default_meta.combine_red

    if PROP_STATE in tokens:
        _apply_state_tokens(flt, nxt, tokens[PROP_STATE], is_extend)
    else:
        nxt.state = {k: int(v) for k, v in flt.get_default_states().items()}

    if PROP_NESTS_HIDDEN in tokens:
        _apply_nests_hidden_tokens(flt, nxt, tokens[PROP_NESTS_HIDDEN])
    else:
        flt.mut_next_state_reset_nests_hidden(nxt)

    return nxt
