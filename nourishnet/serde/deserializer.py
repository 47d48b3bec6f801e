from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, FrozenSet, Hashable, Iterable, Optional

from .walk import ValueKind, transform

logger = logging.getLogger(__name__)

TIMESTAMP_FIELDS: FrozenSet[str] = frozenset(
    {
        "claimedAt",
        "expiryDate",
        "createdAt",
        "updatedAt",
        "pickedUpAt",
        "claimed_at",
        "expiry_date",
        "created_at",
        "updated_at",
        "picked_up_at",
    }
)


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse timestamp text into an aware UTC datetime.

    Returns ``None`` for anything that is not a valid timestamp instead of
    inventing one.
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Unparseable timestamp {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class WireDeserializer:
    """
    Rehydrate timestamp text produced by :class:`WireSerializer`.

    Only string leaves stored under one of ``fields`` are converted; a value
    that fails to parse becomes ``None``.
    """

    @staticmethod
    def rehydrate(value: Any, fields: Iterable[str] = TIMESTAMP_FIELDS) -> Any:
        names = frozenset(fields)

        def _leaf(kind: ValueKind, leaf: Any, key: Optional[Hashable]) -> Any:
            if key in names and kind is ValueKind.PRIMITIVE and leaf is not None:
                return parse_instant(leaf)
            return leaf

        return transform(value, _leaf)
