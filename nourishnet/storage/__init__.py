"""Local persistence backends for the claim cache."""

from __future__ import annotations

import os
from typing import Optional

from ..config import NourishNetConfig, load_config, storage_config_from_url
from .base import KeyValueStorage
from .inmemory import InMemoryStorage
from .sqlite import SQLiteStorage


def get_storage(
    url: Optional[str] = None, config: Optional[NourishNetConfig] = None
) -> KeyValueStorage:
    """Factory function to obtain a key/value storage backend.

    The backend is selected from ``url`` (``sqlite://<path>`` or
    ``memory://``), the ``NOURISHNET_STORAGE_URL`` environment variable, or
    the storage section of the loaded configuration. Each call returns a new
    backend; share the returned object to share state.
    """

    url = url or os.getenv("NOURISHNET_STORAGE_URL")
    if url:
        storage_config = storage_config_from_url(url)
    else:
        storage_config = (config or load_config()).storage

    if storage_config.backend == "inmemory":
        return InMemoryStorage()
    if storage_config.backend == "sqlite":
        if not storage_config.path:
            raise ValueError("SQLite storage requires a path")
        return SQLiteStorage(storage_config.path)
    raise ValueError(f"Unsupported storage backend: {storage_config.backend}")


__all__ = [
    "KeyValueStorage",
    "InMemoryStorage",
    "SQLiteStorage",
    "get_storage",
]
