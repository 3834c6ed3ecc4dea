# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Header normalization utilities.

HTTP header field names are case-insensitive (RFC 9110). Builders and transports
hand headers around as plain dicts, so lookups and merges compare names
case-insensitively while keeping the caller's spelling.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def _coerce_headers_mapping(headers: Any) -> Mapping[object, object] | None:
    """
    Best-effort coercion of "dict-like" header containers into a Mapping.

    Accepts plain dicts, httpx.Headers, anything with `.items()` and iterables of pairs.
    """
    if not headers:
        return None
    if isinstance(headers, Mapping):
        return headers

    items = getattr(headers, "items", None)
    if callable(items):
        try:
            return dict(items())
        except (TypeError, ValueError):
            pass

    try:
        return dict(headers)
    except (TypeError, ValueError):
        return None


def normalize_headers(headers: Mapping[object, object] | None) -> dict[str, str]:
    """Return a lowercase-keyed copy of a header mapping."""
    coerced = _coerce_headers_mapping(headers)
    if not coerced:
        return {}
    out: dict[str, str] = {}
    for key, value in coerced.items():
        if key is None:
            continue
        name = str(key).strip().lower()
        if not name:
            continue
        out[name] = "" if value is None else str(value)
    return out


def header_value(headers: Mapping[object, object] | None, name: str, default: str = "") -> str:
    """Return a header value using case-insensitive key matching."""
    if not headers or not name:
        return default

    coerced = _coerce_headers_mapping(headers)
    if not coerced:
        return default

    lower = str(name).lower()
    for key, value in coerced.items():
        if key is None:
            continue
        if str(key).lower() == lower:
            return default if value is None else str(value).strip()

    return default


def merge_headers(*layers: Mapping[object, object] | None) -> dict[str, str]:
    """
    Merge header mappings left to right; later layers win on name collision.

    The surviving entry keeps the spelling of the layer that set it last.
    """
    merged: dict[str, str] = {}
    names: dict[str, str] = {}
    for layer in layers:
        coerced = _coerce_headers_mapping(layer)
        if not coerced:
            continue
        for key, value in coerced.items():
            if key is None:
                continue
            name = str(key).strip()
            if not name:
                continue
            lower = name.lower()
            previous = names.get(lower)
            if previous is not None:
                merged.pop(previous, None)
            names[lower] = name
            merged[name] = "" if value is None else str(value)
    return merged


__all__ = ["header_value", "merge_headers", "normalize_headers"]
