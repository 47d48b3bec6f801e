"""In-process remote document store for tests and local development."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..contracts import Actor, Claim, ClaimStatus, Donation
from ..errors import DuplicateClaim, PolicyDenied, RemoteUnavailable
from ..policy import AccessRequest, Operation, PolicyEngine, ResourceKind
from .base import RemoteClaimStore

logger = logging.getLogger(__name__)


class InMemoryRemoteStore(RemoteClaimStore):
    """Keeps donation and claim documents in memory.

    Every mutation is checked by the :class:`PolicyEngine` before it
    commits, and claim writes honour the one-pending-claim-per-donation
    constraint. Setting ``online`` to ``False`` makes every call raise
    :class:`RemoteUnavailable`.
    """

    def __init__(self, policy: Optional[PolicyEngine] = None) -> None:
        self.policy = policy or PolicyEngine()
        self.online = True
        self._donations: Dict[str, Donation] = {}
        self._claims: Dict[str, Claim] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Seeding, bypasses the policy
    def put_donation(self, donation: Donation) -> None:
        self._donations[donation.id] = donation

    def put_claim(self, claim: Claim) -> None:
        self._claims[claim.id] = claim

    # ------------------------------------------------------------------
    # Helpers
    def _ensure_online(self) -> None:
        if not self.online:
            raise RemoteUnavailable("Remote store is offline")

    def _donation_snapshot(self, donation_id: str) -> Optional[Donation]:
        return self._donations.get(donation_id)

    def _check_unique(self, claim: Claim) -> None:
        if claim.status != ClaimStatus.PENDING:
            return
        for other in self._claims.values():
            if (
                other.id != claim.id
                and other.donation_id == claim.donation_id
                and other.status == ClaimStatus.PENDING
            ):
                raise DuplicateClaim(claim.donation_id)

    # ------------------------------------------------------------------
    # Donations
    async def create_donation(self, actor: Actor, donation: Donation) -> Donation:
        self._ensure_online()
        async with self._lock:
            self.policy.enforce(
                AccessRequest(
                    actor=actor,
                    kind=ResourceKind.DONATION,
                    operation=Operation.CREATE,
                    after=donation,
                )
            )
            self._donations[donation.id] = donation
        return donation

    async def update_donation(
        self, actor: Actor, donation_id: str, changes: Dict[str, Any]
    ) -> Donation:
        self._ensure_online()
        async with self._lock:
            current = self._donations.get(donation_id)
            request = AccessRequest(
                actor=actor,
                kind=ResourceKind.DONATION,
                operation=Operation.UPDATE,
                before=current,
                after=changes,
            )
            self.policy.enforce(request)
            updated = Donation.model_validate(request.proposed)
            self._donations[donation_id] = updated
        return updated

    # ------------------------------------------------------------------
    # Claims
    async def create_claim(self, actor: Actor, claim: Claim) -> Claim:
        self._ensure_online()
        async with self._lock:
            existing = self._claims.get(claim.id)
            if existing is not None:
                # Writing over an existing document is an update.
                self.policy.enforce(
                    AccessRequest(
                        actor=actor,
                        kind=ResourceKind.CLAIM,
                        operation=Operation.UPDATE,
                        before=existing,
                        after=claim,
                    )
                )
            else:
                self.policy.enforce(
                    AccessRequest(
                        actor=actor,
                        kind=ResourceKind.CLAIM,
                        operation=Operation.CREATE,
                        after=claim,
                    )
                )
            self._check_unique(claim)
            self._claims[claim.id] = claim
        logger.info(f"Committed claim {claim.id} for donation {claim.donation_id}")
        return claim

    async def update_claim(
        self, actor: Actor, claim_id: str, changes: Dict[str, Any]
    ) -> Claim:
        self._ensure_online()
        async with self._lock:
            request = AccessRequest(
                actor=actor,
                kind=ResourceKind.CLAIM,
                operation=Operation.UPDATE,
                before=self._claims.get(claim_id),
                after=changes,
            )
            self.policy.enforce(request)
            updated = Claim.model_validate(request.proposed)
            self._check_unique(updated)
            self._claims[claim_id] = updated
        return updated

    async def delete_claim(self, actor: Actor, claim_id: str) -> None:
        self._ensure_online()
        async with self._lock:
            self.policy.enforce(
                AccessRequest(
                    actor=actor,
                    kind=ResourceKind.CLAIM,
                    operation=Operation.DELETE,
                    before=self._claims.get(claim_id),
                )
            )
            del self._claims[claim_id]

    def _readable(self, actor: Actor, claim: Claim) -> bool:
        return self.policy.is_allowed(
            AccessRequest(
                actor=actor,
                kind=ResourceKind.CLAIM,
                operation=Operation.READ,
                before=claim,
                donation=self._donation_snapshot(claim.donation_id),
            )
        )

    async def get_claim(self, actor: Actor, claim_id: str) -> Optional[Claim]:
        self._ensure_online()
        claim = self._claims.get(claim_id)
        if claim is None:
            return None
        if not self._readable(actor, claim):
            raise PolicyDenied(Operation.READ.value, ResourceKind.CLAIM.value)
        return claim

    async def list_claims_for_user(self, actor: Actor, user_id: str) -> List[Claim]:
        self._ensure_online()
        return [
            claim
            for claim in self._claims.values()
            if claim.user_id == user_id and self._readable(actor, claim)
        ]
