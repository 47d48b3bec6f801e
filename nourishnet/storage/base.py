"""Key/value storage abstraction used by the local claim cache."""

from __future__ import annotations

from typing import Optional, Protocol


class KeyValueStorage(Protocol):
    """Protocol for durable string key/value backends.

    Every ``set_item`` replaces the whole value of a key atomically, so a
    concurrent reader sees either the old or the new value. Backends raise
    :class:`~nourishnet.errors.PersistenceUnavailable` when the medium fails.
    """

    async def get_item(self, key: str) -> Optional[str]:
        """Return the stored text, or ``None`` when the key is missing."""

    async def set_item(self, key: str, value: str) -> None:
        """Replace the value stored under ``key``."""

    async def remove_item(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""
