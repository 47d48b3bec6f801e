"""Offline-first cache of the current actor's claims."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ValidationError

from ..config import DEFAULT_CLAIMS_KEY, NourishNetConfig, load_config
from ..contracts import Claim, ClaimEntry, ClaimError, ClaimResult, ClaimStatus
from ..errors import MalformedCacheEntry, PersistenceUnavailable
from ..serde import rehydrate, sanitize, to_wire
from ..storage import KeyValueStorage, get_storage

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_claim_id() -> str:
    return f"claim_{uuid.uuid4().hex}"


class ClaimStore:
    """Durable local collection of :class:`ClaimEntry` records.

    The whole collection lives as one JSON array under ``key``. Every
    mutating call reads the collection, changes it and writes it back in a
    single ``set_item``; those cycles are serialized by a per-store lock so
    concurrent calls cannot overwrite each other's changes. Storage failures
    are logged and turned into failure results, never raised.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = DEFAULT_CLAIMS_KEY,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_claim_id,
    ) -> None:
        self._storage = storage
        self.key = key
        self._clock = clock
        self._new_id = id_factory
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: Optional[NourishNetConfig] = None) -> "ClaimStore":
        config = config or load_config()
        return cls(get_storage(config=config), key=config.claims_key)

    # ------------------------------------------------------------------
    # Encoding
    def _now(self) -> datetime:
        # Persisted timestamps keep millisecond precision only.
        now = self._clock()
        return now.replace(microsecond=now.microsecond // 1000 * 1000)

    @staticmethod
    def _dump(entry: ClaimEntry) -> Dict[str, Any]:
        return to_wire(entry.model_dump(by_alias=True))

    @staticmethod
    def _parse(index: int, raw: Any) -> ClaimEntry:
        if not isinstance(raw, dict):
            raise MalformedCacheEntry(index, "entry is not an object")
        try:
            return ClaimEntry.model_validate(rehydrate(raw))
        except ValidationError as e:
            raise MalformedCacheEntry(index, f"{e.error_count()} invalid field(s)") from e

    async def _read_raw(self) -> List[Any]:
        try:
            text = await self._storage.get_item(self.key)
        except OSError as e:
            raise PersistenceUnavailable(str(e)) from e
        if text is None:
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise PersistenceUnavailable(f"Corrupt claim cache: {e}") from e
        if not isinstance(data, list):
            raise PersistenceUnavailable("Claim cache is not a list")
        return data

    async def _write_raw(self, items: List[Any]) -> None:
        try:
            text = json.dumps(items)
        except (TypeError, ValueError) as e:
            raise PersistenceUnavailable(f"Claim cache is not serializable: {e}") from e
        try:
            await self._storage.set_item(self.key, text)
        except OSError as e:
            raise PersistenceUnavailable(str(e)) from e

    def _parse_all(self, raw: List[Any]) -> List[ClaimEntry]:
        entries: List[ClaimEntry] = []
        for index, item in enumerate(raw):
            try:
                entries.append(self._parse(index, item))
            except MalformedCacheEntry as e:
                logger.warning(f"Skipping cached claim: {e}")
        return entries

    @staticmethod
    def _find_active(raw: List[Any], donation_id: str) -> Optional[Dict[str, Any]]:
        for item in raw:
            if (
                isinstance(item, dict)
                and item.get("donationId") == donation_id
                and item.get("status") == ClaimStatus.PENDING.value
            ):
                return item
        return None

    # ------------------------------------------------------------------
    # Reads
    async def list_claims(self) -> List[ClaimEntry]:
        """Return every cached entry; ``[]`` if the cache is empty or unreadable."""
        try:
            raw = await self._read_raw()
        except PersistenceUnavailable as e:
            logger.error(f"Error loading claims: {e}")
            return []
        return self._parse_all(raw)

    async def get_claim(self, claim_id: str) -> Optional[ClaimEntry]:
        for entry in await self.list_claims():
            if entry.id == claim_id:
                return entry
        return None

    # ------------------------------------------------------------------
    # Mutations
    async def create_claim(
        self,
        donation_id: str,
        donation_snapshot: Mapping[str, Any] | BaseModel | None = None,
        qr_data: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ClaimResult:
        """Add a pending claim unless the donation already has one."""
        if isinstance(donation_snapshot, BaseModel):
            donation_snapshot = donation_snapshot.model_dump(by_alias=True)
        async with self._lock:
            try:
                raw = await self._read_raw()
                if self._find_active(raw, donation_id) is not None:
                    logger.info(f"Donation {donation_id} already claimed")
                    return ClaimResult.failure(ClaimError.ALREADY_CLAIMED)
                entry = ClaimEntry(
                    id=self._new_id(),
                    donation_id=donation_id,
                    user_id=user_id,
                    status=ClaimStatus.PENDING,
                    claimed_at=self._now(),
                    qr_data=qr_data,
                    donation=sanitize(dict(donation_snapshot or {})),
                )
                await self._write_raw(raw + [self._dump(entry)])
            except PersistenceUnavailable as e:
                logger.error(f"Error saving claim: {e}")
                return ClaimResult.failure(ClaimError.PERSISTENCE_UNAVAILABLE)
        logger.info(f"Claimed donation {donation_id} as {entry.id}")
        return ClaimResult.success(entry)

    async def update_claim_status(self, claim_id: str, status: ClaimStatus | str) -> bool:
        """Move an entry to ``status``.

        Unknown claim ids are a successful no-op. Transitions the claim
        lifecycle does not allow are rejected without touching storage.
        """
        try:
            target = ClaimStatus(status)
        except ValueError:
            logger.warning(f"Unknown claim status {status!r}")
            return False
        async with self._lock:
            try:
                raw = await self._read_raw()
                for item in raw:
                    if isinstance(item, dict) and item.get("id") == claim_id:
                        break
                else:
                    return True
                current = item.get("status")
                if current == target.value:
                    return True
                if not self._transition_allowed(current, target):
                    logger.warning(
                        f"Refusing claim {claim_id} transition {current} -> {target.value}"
                    )
                    return False
                item["status"] = target.value
                item["synced"] = False
                await self._write_raw(raw)
            except PersistenceUnavailable as e:
                logger.error(f"Error updating claim status: {e}")
                return False
        logger.info(f"Claim {claim_id} is now {target.value}")
        return True

    @staticmethod
    def _transition_allowed(current: Any, target: ClaimStatus) -> bool:
        try:
            return ClaimStatus(current).can_transition(target)
        except ValueError:
            return False

    async def delete_claim(self, claim_id: str) -> bool:
        async with self._lock:
            try:
                raw = await self._read_raw()
                kept = [
                    item
                    for item in raw
                    if not (isinstance(item, dict) and item.get("id") == claim_id)
                ]
                if len(kept) != len(raw):
                    await self._write_raw(kept)
            except PersistenceUnavailable as e:
                logger.error(f"Error deleting claim: {e}")
                return False
        return True

    async def clear_all(self) -> bool:
        """Remove the whole collection, e.g. on sign-out."""
        async with self._lock:
            try:
                await self._storage.remove_item(self.key)
            except (PersistenceUnavailable, OSError) as e:
                logger.error(f"Error clearing claims: {e}")
                return False
        return True

    async def mark_synced(self, claim_id: str) -> bool:
        """Record that the remote store holds the entry's current state."""
        async with self._lock:
            try:
                raw = await self._read_raw()
                changed = False
                for item in raw:
                    if isinstance(item, dict) and item.get("id") == claim_id:
                        item["synced"] = True
                        changed = True
                if changed:
                    await self._write_raw(raw)
            except PersistenceUnavailable as e:
                logger.error(f"Error marking claim synced: {e}")
                return False
        return changed

    async def invalidate_donation(self, donation_id: str) -> int:
        """Cancel pending entries of a donation that expired or was withdrawn.

        Returns the number of entries cancelled.
        """
        async with self._lock:
            try:
                raw = await self._read_raw()
                cancelled = 0
                for item in raw:
                    if (
                        isinstance(item, dict)
                        and item.get("donationId") == donation_id
                        and item.get("status") == ClaimStatus.PENDING.value
                    ):
                        item["status"] = ClaimStatus.CANCELLED.value
                        item["synced"] = False
                        cancelled += 1
                if cancelled:
                    await self._write_raw(raw)
            except PersistenceUnavailable as e:
                logger.error(f"Error invalidating claims for {donation_id}: {e}")
                return 0
        if cancelled:
            logger.info(f"Cancelled {cancelled} claim(s) for donation {donation_id}")
        return cancelled

    async def reconcile(self, remote_claims: Iterable[Claim]) -> List[ClaimEntry]:
        """Merge the authoritative remote claims into the local collection.

        - entries the remote knows take the remote status and are synced,
          unless they hold an unsynced status change that is still a legal
          move from the remote status; that change stays pending a push;
        - synced entries the remote no longer has are dropped;
        - unsynced pending entries lose to a different remote pending claim
          on the same donation and end up cancelled;
        - remote claims missing locally are added without a donation
          snapshot.

        Malformed stored entries are carried over untouched.
        """
        remote = list(remote_claims)
        remote_by_id = {claim.id: claim for claim in remote}
        remote_pending = {
            claim.donation_id: claim.id
            for claim in remote
            if claim.status == ClaimStatus.PENDING
        }
        async with self._lock:
            try:
                raw = await self._read_raw()
            except PersistenceUnavailable as e:
                logger.error(f"Error loading claims for reconcile: {e}")
                return []

            merged: List[ClaimEntry] = []
            unparsed: List[Any] = []
            for index, item in enumerate(raw):
                try:
                    entry = self._parse(index, item)
                except MalformedCacheEntry as e:
                    logger.warning(f"Keeping unparsed cached claim: {e}")
                    unparsed.append(item)
                    continue

                claim = remote_by_id.get(entry.id)
                if claim is not None:
                    keep_local = not entry.synced and self._transition_allowed(
                        claim.status, ClaimStatus(entry.status)
                    )
                    if keep_local:
                        logger.info(
                            f"Keeping offline change of claim {entry.id}: "
                            f"{claim.status} -> {entry.status}"
                        )
                    merged.append(
                        entry.model_copy(
                            update={
                                "status": entry.status if keep_local else claim.status,
                                "user_id": claim.user_id,
                                "claimed_at": claim.claimed_at or entry.claimed_at,
                                "qr_data": claim.qr_data or entry.qr_data,
                                "synced": not keep_local,
                            }
                        )
                    )
                elif entry.synced:
                    logger.info(f"Dropping claim {entry.id} removed remotely")
                elif entry.is_active and entry.donation_id in remote_pending:
                    logger.warning(
                        f"Claim {entry.id} lost donation {entry.donation_id} to "
                        f"{remote_pending[entry.donation_id]}"
                    )
                    merged.append(
                        entry.model_copy(
                            update={"status": ClaimStatus.CANCELLED.value, "synced": True}
                        )
                    )
                else:
                    merged.append(entry)

            known = {entry.id for entry in merged}
            for claim in remote:
                if claim.id not in known:
                    merged.append(
                        ClaimEntry(
                            id=claim.id,
                            donation_id=claim.donation_id,
                            user_id=claim.user_id,
                            status=claim.status,
                            claimed_at=claim.claimed_at,
                            qr_data=claim.qr_data,
                            synced=True,
                        )
                    )

            try:
                await self._write_raw([self._dump(e) for e in merged] + unparsed)
            except PersistenceUnavailable as e:
                logger.error(f"Error saving reconciled claims: {e}")
                return []
        return merged
