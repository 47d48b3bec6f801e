from __future__ import annotations

import os
from typing import Optional, Literal

import yaml
from pydantic import BaseModel

DEFAULT_CLAIMS_KEY = "@nourishnet_claims"


class StorageConfig(BaseModel):
    """Configuration for the local key/value storage."""

    backend: Literal["inmemory", "sqlite"] = "inmemory"
    path: Optional[str] = None


class NourishNetConfig(BaseModel):
    """Top-level configuration model."""

    storage: StorageConfig = StorageConfig()
    claims_key: str = DEFAULT_CLAIMS_KEY


def load_config(path: Optional[str] = None) -> NourishNetConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to NOURISHNET_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("NOURISHNET_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = NourishNetConfig(**data)
    else:
        config = NourishNetConfig()

    env_storage_url = os.getenv("NOURISHNET_STORAGE_URL")
    if env_storage_url:
        config.storage = storage_config_from_url(env_storage_url)
    return config


def storage_config_from_url(url: str) -> StorageConfig:
    """Translate ``sqlite:///path`` or ``memory://`` into a storage section."""

    if url.startswith("sqlite://"):
        path = url.replace("sqlite://", "", 1)
        return StorageConfig(backend="sqlite", path=path)
    if url in ("memory://", "inmemory://"):
        return StorageConfig(backend="inmemory")
    raise ValueError(f"Unsupported storage url: {url}")
