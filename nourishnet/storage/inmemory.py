"""In-memory implementation of the key/value storage."""

from __future__ import annotations

from typing import Dict, Optional

from .base import KeyValueStorage


class InMemoryStorage(KeyValueStorage):
    """Keep values in local memory.

    Useful for tests or when no storage is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)
