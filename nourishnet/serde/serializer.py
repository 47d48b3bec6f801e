from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Hashable, Optional

from .walk import ValueKind, transform


def format_instant(value: datetime) -> str:
    """Canonical timestamp text: UTC, millisecond precision, ``Z`` suffix.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc).replace(tzinfo=None)
    return utc.isoformat(timespec="milliseconds") + "Z"


class WireSerializer:
    """
    Convert values into a structure that is safe to store or transmit as text.

    Every datetime leaf becomes canonical timestamp text; all other leaves
    are left as they are.
    """

    @staticmethod
    def _leaf(kind: ValueKind, value: Any, key: Optional[Hashable]) -> Any:
        if kind is ValueKind.INSTANT:
            return format_instant(value)
        return value

    @staticmethod
    def serialize(value: Any) -> Any:
        return transform(value, WireSerializer._leaf)
