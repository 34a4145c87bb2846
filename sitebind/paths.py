"""Dotted-path lookup shared by every substitution pass."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any


def _is_index(segment: str) -> bool:
    return segment.isdigit() and segment.isascii()


def resolve_path(root: Any, dotted_path: str | None, default: Any = None) -> Any:
    """
    Return the value reached by descending into ``root`` one segment at a time.

    - An empty path returns ``root`` itself.
    - Mapping values are indexed by key, lists/tuples by non-negative integer segments.
    - Descending through ``None``, a scalar, or a missing key/index yields ``default``.
    """

    if not dotted_path:
        return root

    current = root
    for segment in dotted_path.split("."):
        if current is None:
            return default

        if isinstance(current, Mapping):
            if segment not in current:
                return default
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes, bytearray)):
            if not _is_index(segment):
                return default
            index = int(segment)
            if index >= len(current):
                return default
            current = current[index]
        else:
            return default

    return current


def stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)
