"""Remote document store collaborators."""

from .base import RemoteClaimStore
from .inmemory import InMemoryRemoteStore

__all__ = ["RemoteClaimStore", "InMemoryRemoteStore"]
