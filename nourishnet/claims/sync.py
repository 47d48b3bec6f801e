"""Client-side claim flow: validate locally, commit remotely, converge."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel

from ..contracts import (
    Actor,
    ClaimEntry,
    ClaimError,
    ClaimResult,
    ClaimStatus,
    Donation,
    DonationStatus,
)
from ..errors import DuplicateClaim, PolicyDenied, RemoteUnavailable
from ..remote import RemoteClaimStore
from .store import ClaimStore

logger = logging.getLogger(__name__)


class ClaimSync:
    """Drives claim actions for one signed-in actor.

    The local :class:`ClaimStore` answers first so the caller never waits on
    the network; the remote store has the final word. A remote rejection is
    reported once and never retried: duplicates come back as
    ``ALREADY_CLAIMED`` and policy denials as ``POLICY_DENIED``, with the
    optimistic local entry removed. When the remote is unreachable the
    local entry stays pending and unsynced until :meth:`push_pending`.
    """

    def __init__(self, store: ClaimStore, remote: RemoteClaimStore, actor: Actor) -> None:
        self.store = store
        self.remote = remote
        self.actor = actor

    async def claim(
        self,
        donation_id: str,
        donation_snapshot: Mapping[str, Any] | BaseModel | None = None,
        qr_data: Optional[str] = None,
    ) -> ClaimResult:
        result = await self.store.create_claim(
            donation_id, donation_snapshot, qr_data, user_id=self.actor.id
        )
        if not result.ok or result.entry is None:
            return result
        return await self._submit(result.entry)

    async def _submit(self, entry: ClaimEntry) -> ClaimResult:
        try:
            await self.remote.create_claim(self.actor, entry.to_claim(self.actor.id))
        except DuplicateClaim:
            logger.info(f"Donation {entry.donation_id} was claimed by someone else")
            await self.store.delete_claim(entry.id)
            return ClaimResult.failure(ClaimError.ALREADY_CLAIMED)
        except PolicyDenied as e:
            logger.warning(f"Claim {entry.id} rejected: {e}")
            await self.store.delete_claim(entry.id)
            return ClaimResult.failure(ClaimError.POLICY_DENIED)
        except RemoteUnavailable:
            logger.info(f"Remote unavailable, claim {entry.id} kept offline")
            return ClaimResult.success(entry)
        await self.store.mark_synced(entry.id)
        return ClaimResult.success(entry.model_copy(update={"synced": True}))

    async def update_status(self, claim_id: str, status: ClaimStatus | str) -> bool:
        """Change a claim's status remotely and locally.

        A remote denial leaves the local entry untouched.
        """
        entry = await self.store.get_claim(claim_id)
        if entry is None:
            logger.warning(f"Claim {claim_id} not found locally")
            return False
        try:
            target = ClaimStatus(status)
        except ValueError:
            logger.warning(f"Unknown claim status {status!r}")
            return False
        if entry.status != target and not ClaimStatus(entry.status).can_transition(target):
            logger.warning(f"Claim {claim_id} cannot move from {entry.status} to {target.value}")
            return False

        try:
            await self.remote.update_claim(self.actor, claim_id, {"status": target.value})
        except RemoteUnavailable:
            logger.info(f"Remote unavailable, status of {claim_id} changed offline")
            return await self.store.update_claim_status(claim_id, target)
        except (PolicyDenied, DuplicateClaim) as e:
            logger.warning(f"Status change for claim {claim_id} rejected: {e}")
            return False

        if not await self.store.update_claim_status(claim_id, target):
            return False
        await self.store.mark_synced(claim_id)
        return True

    async def update_donation_status(
        self, donation: Donation, status: DonationStatus | str
    ) -> Optional[Donation]:
        """Move one of the actor's donations along its lifecycle.

        Illegal moves fail locally without a remote call. Returns the
        committed donation, or ``None`` if nothing changed.
        """
        try:
            target = DonationStatus(status)
        except ValueError:
            logger.warning(f"Unknown donation status {status!r}")
            return None
        if not DonationStatus(donation.status).can_transition(target):
            logger.warning(
                f"Donation {donation.id} cannot move from {donation.status} to {target.value}"
            )
            return None

        try:
            updated = await self.remote.update_donation(
                self.actor, donation.id, {"status": target.value}
            )
        except (RemoteUnavailable, PolicyDenied) as e:
            logger.warning(f"Status change for donation {donation.id} failed: {e}")
            return None
        return updated

    async def mark_picked_up(self, claim_id: str) -> bool:
        return await self.update_status(claim_id, ClaimStatus.PICKED_UP)

    async def cancel(self, claim_id: str) -> bool:
        return await self.update_status(claim_id, ClaimStatus.CANCELLED)

    async def push_pending(self) -> int:
        """Submit entries changed while offline.

        Stops at the first connectivity failure and returns how many entries
        the remote acknowledged. Entries the remote rejects are dropped
        locally.
        """
        pushed = 0
        for entry in await self.store.list_claims():
            if entry.synced:
                continue
            claim = entry.to_claim(self.actor.id)
            try:
                existing = await self.remote.get_claim(self.actor, entry.id)
                if existing is None:
                    await self.remote.create_claim(self.actor, claim)
                elif existing.status != claim.status:
                    await self.remote.update_claim(
                        self.actor, entry.id, {"status": claim.status}
                    )
            except RemoteUnavailable:
                logger.info(f"Remote unavailable, {pushed} claim(s) pushed")
                return pushed
            except (DuplicateClaim, PolicyDenied) as e:
                logger.warning(f"Dropping offline claim {entry.id}: {e}")
                await self.store.delete_claim(entry.id)
                continue
            await self.store.mark_synced(entry.id)
            pushed += 1
        return pushed

    async def refresh(self) -> List[ClaimEntry]:
        """Push offline changes, then reconcile with the actor's remote claims."""
        await self.push_pending()
        try:
            remote_claims = await self.remote.list_claims_for_user(self.actor, self.actor.id)
        except RemoteUnavailable:
            logger.info("Remote unavailable, serving cached claims")
            return await self.store.list_claims()
        return await self.store.reconcile(remote_claims)
