"""NourishNet: access policy and offline claim cache for donation matching."""

from .claims import ClaimStore, ClaimSync
from .contracts import (
    Actor,
    Claim,
    ClaimEntry,
    ClaimError,
    ClaimResult,
    ClaimStatus,
    Donation,
    DonationStatus,
    Role,
)
from .policy import AccessRequest, Decision, Operation, PolicyEngine, ResourceKind
from .storage import get_storage

__version__ = "0.1.0"
__all__ = [
    "AccessRequest",
    "Actor",
    "Claim",
    "ClaimEntry",
    "ClaimError",
    "ClaimResult",
    "ClaimStatus",
    "ClaimStore",
    "ClaimSync",
    "Decision",
    "Donation",
    "DonationStatus",
    "Operation",
    "PolicyEngine",
    "ResourceKind",
    "Role",
    "get_storage",
]
