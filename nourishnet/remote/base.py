"""Interface of the remote document store holding the authoritative claims."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from ..contracts import Actor, Claim, Donation


class RemoteClaimStore(Protocol):
    """Protocol for the remote source of truth.

    Implementations evaluate the access policy before committing a write and
    enforce at most one pending claim per donation. They raise
    :class:`~nourishnet.errors.PolicyDenied`,
    :class:`~nourishnet.errors.DuplicateClaim` or
    :class:`~nourishnet.errors.RemoteUnavailable`.
    """

    async def create_claim(self, actor: Actor, claim: Claim) -> Claim:
        """Commit a new claim document."""

    async def update_claim(
        self, actor: Actor, claim_id: str, changes: Dict[str, Any]
    ) -> Claim:
        """Apply a partial update to a claim document."""

    async def delete_claim(self, actor: Actor, claim_id: str) -> None:
        """Delete a claim document."""

    async def get_claim(self, actor: Actor, claim_id: str) -> Optional[Claim]:
        """Fetch one claim, ``None`` when it does not exist."""

    async def list_claims_for_user(self, actor: Actor, user_id: str) -> List[Claim]:
        """Return every claim made by ``user_id`` that ``actor`` may read."""

    async def create_donation(self, actor: Actor, donation: Donation) -> Donation:
        """Commit a new donation document."""

    async def update_donation(
        self, actor: Actor, donation_id: str, changes: Dict[str, Any]
    ) -> Donation:
        """Apply a partial update to a donation document."""
