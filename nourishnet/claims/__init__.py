"""Offline claim cache and its synchronization with the remote store."""

from .store import ClaimStore
from .sync import ClaimSync

__all__ = ["ClaimStore", "ClaimSync"]
