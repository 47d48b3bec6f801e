"""Core domain contracts for donations, claims and the local claim cache."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WIRE_MODEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    use_enum_values=True,
)


class Role(str, Enum):
    DONOR = "donor"
    RECIPIENT = "recipient"
    ADMIN = "admin"


class DonationStatus(str, Enum):
    AVAILABLE = "available"
    CLAIMED = "claimed"
    PICKED_UP = "picked_up"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    def can_transition(self, target: "DonationStatus | str") -> bool:
        """Return ``True`` if the lifecycle allows moving to ``target``."""
        return DonationStatus(target) in DONATION_TRANSITIONS[self]


class ClaimStatus(str, Enum):
    PENDING = "pending"
    PICKED_UP = "picked_up"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self is ClaimStatus.PENDING

    def can_transition(self, target: "ClaimStatus | str") -> bool:
        return ClaimStatus(target) in CLAIM_TRANSITIONS[self]


DONATION_TRANSITIONS: Dict[DonationStatus, FrozenSet[DonationStatus]] = {
    DonationStatus.AVAILABLE: frozenset(
        {DonationStatus.CLAIMED, DonationStatus.EXPIRED, DonationStatus.CANCELLED}
    ),
    DonationStatus.CLAIMED: frozenset(
        {
            DonationStatus.AVAILABLE,
            DonationStatus.PICKED_UP,
            DonationStatus.EXPIRED,
            DonationStatus.CANCELLED,
        }
    ),
    DonationStatus.PICKED_UP: frozenset(),
    DonationStatus.EXPIRED: frozenset(),
    DonationStatus.CANCELLED: frozenset(),
}

CLAIM_TRANSITIONS: Dict[ClaimStatus, FrozenSet[ClaimStatus]] = {
    ClaimStatus.PENDING: frozenset({ClaimStatus.PICKED_UP, ClaimStatus.CANCELLED}),
    ClaimStatus.PICKED_UP: frozenset(),
    ClaimStatus.CANCELLED: frozenset(),
}


class Actor(BaseModel):
    """Authenticated identity supplied by the calling context."""

    id: str
    role: Role = Role.RECIPIENT

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Donation(BaseModel):
    """A food item offered for pickup."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="allow",
    )

    id: str
    owner_id: str
    status: DonationStatus = DonationStatus.AVAILABLE
    item_name: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[int] = None
    location: Optional[str] = None
    expiry_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Claim(BaseModel):
    """One actor's commitment to pick up a specific donation."""

    model_config = WIRE_MODEL_CONFIG

    id: str
    donation_id: str
    user_id: str
    status: ClaimStatus = ClaimStatus.PENDING
    claimed_at: Optional[datetime] = None
    qr_data: Optional[str] = None


class ClaimEntry(BaseModel):
    """Local cache record pairing a claim with a snapshot of its donation.

    ``claimed_at`` is ``None`` when the persisted timestamp could not be
    parsed. ``synced`` flips to ``True`` once the remote store acknowledged
    the claim.
    """

    model_config = WIRE_MODEL_CONFIG

    id: str
    donation_id: str
    user_id: Optional[str] = None
    status: ClaimStatus = ClaimStatus.PENDING
    claimed_at: Optional[datetime] = None
    qr_data: Optional[str] = None
    donation: Dict[str, Any] = Field(default_factory=dict)
    synced: bool = False

    @property
    def is_active(self) -> bool:
        return self.status == ClaimStatus.PENDING

    def to_claim(self, default_user_id: Optional[str] = None) -> Claim:
        """Project the entry onto the remote claim document.

        ``default_user_id`` only fills in entries cached without a claimant.
        Raises ``ValueError`` when neither is available.
        """
        user_id = self.user_id or default_user_id
        if not user_id:
            raise ValueError(f"Claim {self.id} has no claimant")
        return Claim(
            id=self.id,
            donation_id=self.donation_id,
            user_id=user_id,
            status=self.status,
            claimed_at=self.claimed_at,
            qr_data=self.qr_data,
        )


class ClaimError(str, Enum):
    ALREADY_CLAIMED = "already_claimed"
    POLICY_DENIED = "policy_denied"
    PERSISTENCE_UNAVAILABLE = "persistence_unavailable"


class ClaimResult(BaseModel):
    """Structured outcome of a claim creation."""

    ok: bool
    entry: Optional[ClaimEntry] = None
    error: Optional[ClaimError] = None

    @classmethod
    def success(cls, entry: ClaimEntry) -> "ClaimResult":
        return cls(ok=True, entry=entry)

    @classmethod
    def failure(cls, error: ClaimError) -> "ClaimResult":
        return cls(ok=False, error=error)
