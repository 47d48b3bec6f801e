"""Error types shared by the policy, storage and claim layers."""

from __future__ import annotations


class NourishNetError(Exception):
    """Base class for all recoverable NourishNet errors."""


class PolicyDenied(NourishNetError):
    """The access policy rejected a mutation.

    The message only names the operation and resource kind so that a denial
    never leaks another actor's data.
    """

    def __init__(self, operation: str, kind: str) -> None:
        self.operation = operation
        self.kind = kind
        super().__init__(f"{operation} on {kind} denied")


class DuplicateClaim(NourishNetError):
    """A pending claim already exists for the donation."""

    def __init__(self, donation_id: str) -> None:
        self.donation_id = donation_id
        super().__init__(f"Donation {donation_id} is already claimed")


class PersistenceUnavailable(NourishNetError):
    """Local storage could not be read or written."""


class MalformedCacheEntry(NourishNetError):
    """A persisted cache entry could not be parsed."""

    def __init__(self, index: int, reason: str) -> None:
        self.index = index
        self.reason = reason
        super().__init__(f"Malformed cache entry at index {index}: {reason}")


class RemoteUnavailable(NourishNetError):
    """The remote document store could not be reached."""
