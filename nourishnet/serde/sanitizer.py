from __future__ import annotations

import re
from typing import Any, Hashable, Optional

from .walk import ValueKind, transform

_UNSAFE_CHARS = re.compile(r"[\x00-\x1f\x7f<>]")


def sanitize_string(text: str) -> str:
    """Drop control characters and angle brackets, then trim whitespace."""
    return _UNSAFE_CHARS.sub("", text).strip()


def _sanitize_leaf(kind: ValueKind, value: Any, key: Optional[Hashable]) -> Any:
    if kind is ValueKind.PRIMITIVE and isinstance(value, str):
        return sanitize_string(value)
    return value


def sanitize(value: Any) -> Any:
    """Return a copy of ``value`` with every string leaf sanitized.

    Datetimes, opaque instances, callables and ``None`` pass through
    untouched; containers keep their shape and key order.
    """
    return transform(value, _sanitize_leaf)
