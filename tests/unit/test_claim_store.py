"""Offline claim store tests."""

import asyncio
import json
from datetime import datetime, timezone

import pytest

from nourishnet.claims import ClaimStore
from nourishnet.config import DEFAULT_CLAIMS_KEY
from nourishnet.contracts import Claim, ClaimError, Donation
from nourishnet.errors import PersistenceUnavailable
from nourishnet.storage import InMemoryStorage

NOW = datetime(2030, 1, 1, 9, 15, 30, 250000, tzinfo=timezone.utc)
SNAPSHOT = {
    "itemName": " <Bread> ",
    "ownerId": "owner123",
    "expiryDate": datetime(2030, 1, 3, tzinfo=timezone.utc),
}


class FailingStorage:
    """Storage whose medium is gone."""

    async def get_item(self, key):
        raise PersistenceUnavailable("storage unavailable")

    async def set_item(self, key, value):
        raise PersistenceUnavailable("storage unavailable")

    async def remove_item(self, key):
        raise PersistenceUnavailable("storage unavailable")


class SlowStorage(InMemoryStorage):
    """Yields to the event loop inside every call to expose interleaving."""

    async def get_item(self, key):
        await asyncio.sleep(0)
        return await super().get_item(key)

    async def set_item(self, key, value):
        await asyncio.sleep(0)
        await super().set_item(key, value)


def make_store(storage=None):
    counter = iter(range(1, 1000))
    return ClaimStore(
        storage if storage is not None else InMemoryStorage(),
        clock=lambda: NOW,
        id_factory=lambda: f"claim_{next(counter)}",
    )


@pytest.mark.asyncio
async def test_empty_store_lists_nothing():
    store = make_store()
    assert await store.list_claims() == []


@pytest.mark.asyncio
async def test_claim_lifecycle_scenario():
    store = make_store()

    first = await store.create_claim("d1", SNAPSHOT, "qr-abc")
    assert first.ok
    assert first.entry.status == "pending"
    assert first.entry.qr_data == "qr-abc"
    assert len(await store.list_claims()) == 1

    second = await store.create_claim("d1", SNAPSHOT, "qr-def")
    assert not second.ok
    assert second.error is ClaimError.ALREADY_CLAIMED
    assert len(await store.list_claims()) == 1

    assert await store.update_claim_status(first.entry.id, "picked_up")

    entries = await store.list_claims()
    assert len(entries) == 1
    assert entries[0].status == "picked_up"
    assert entries[0].claimed_at == first.entry.claimed_at


@pytest.mark.asyncio
async def test_timestamps_are_rehydrated():
    store = make_store()
    await store.create_claim("d1", SNAPSHOT, "qr")

    (entry,) = await store.list_claims()
    assert isinstance(entry.claimed_at, datetime)
    assert entry.claimed_at == NOW.replace(microsecond=250000)
    assert entry.donation["expiryDate"] == datetime(2030, 1, 3, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_snapshot_is_sanitized_and_stored_as_wire_text():
    storage = InMemoryStorage()
    store = make_store(storage)
    await store.create_claim("d1", SNAPSHOT, "qr")

    raw = json.loads(await storage.get_item(DEFAULT_CLAIMS_KEY))
    assert raw[0]["donation"]["itemName"] == "Bread"
    assert raw[0]["donation"]["expiryDate"] == "2030-01-03T00:00:00.000Z"
    assert raw[0]["claimedAt"] == "2030-01-01T09:15:30.250Z"
    assert raw[0]["donationId"] == "d1"


@pytest.mark.asyncio
async def test_accepts_donation_model_snapshot():
    store = make_store()
    donation = Donation(id="d1", owner_id="owner123", item_name="Soup")

    result = await store.create_claim("d1", donation, "qr")

    assert result.ok
    assert result.entry.donation["itemName"] == "Soup"


@pytest.mark.asyncio
async def test_reclaim_allowed_after_cancel():
    store = make_store()
    first = await store.create_claim("d1", {}, "qr")
    assert await store.update_claim_status(first.entry.id, "cancelled")

    second = await store.create_claim("d1", {}, "qr")

    assert second.ok
    assert len(await store.list_claims()) == 2


@pytest.mark.asyncio
async def test_update_unknown_claim_is_noop():
    store = make_store()
    await store.create_claim("d1", {}, "qr")

    assert await store.update_claim_status("missing", "picked_up")
    (entry,) = await store.list_claims()
    assert entry.status == "pending"


@pytest.mark.asyncio
async def test_illegal_transition_is_rejected():
    store = make_store()
    result = await store.create_claim("d1", {}, "qr")
    await store.update_claim_status(result.entry.id, "picked_up")

    assert not await store.update_claim_status(result.entry.id, "pending")
    assert not await store.update_claim_status(result.entry.id, "bogus")
    (entry,) = await store.list_claims()
    assert entry.status == "picked_up"


@pytest.mark.asyncio
async def test_delete_and_clear():
    store = make_store()
    a = await store.create_claim("d1", {}, "qr")
    await store.create_claim("d2", {}, "qr")

    assert await store.delete_claim(a.entry.id)
    assert [e.donation_id for e in await store.list_claims()] == ["d2"]

    assert await store.clear_all()
    assert await store.list_claims() == []


@pytest.mark.asyncio
async def test_get_claim_and_mark_synced():
    store = make_store()
    result = await store.create_claim("d1", {}, "qr")

    assert not (await store.get_claim(result.entry.id)).synced
    assert await store.mark_synced(result.entry.id)
    assert (await store.get_claim(result.entry.id)).synced
    assert not await store.mark_synced("missing")
    assert await store.get_claim("missing") is None


@pytest.mark.asyncio
async def test_failing_storage_degrades_gracefully():
    store = make_store(FailingStorage())

    assert await store.list_claims() == []
    result = await store.create_claim("d1", {}, "qr")
    assert not result.ok
    assert result.error is ClaimError.PERSISTENCE_UNAVAILABLE
    assert not await store.update_claim_status("c1", "picked_up")
    assert not await store.delete_claim("c1")
    assert not await store.clear_all()
    assert await store.invalidate_donation("d1") == 0


@pytest.mark.asyncio
async def test_corrupt_cache_is_not_overwritten():
    storage = InMemoryStorage({DEFAULT_CLAIMS_KEY: "{not json"})
    store = make_store(storage)

    assert await store.list_claims() == []
    result = await store.create_claim("d1", {}, "qr")
    assert result.error is ClaimError.PERSISTENCE_UNAVAILABLE
    assert await storage.get_item(DEFAULT_CLAIMS_KEY) == "{not json"


@pytest.mark.asyncio
async def test_malformed_entries_are_skipped():
    raw = [
        {"id": "c1", "donationId": "d1", "status": "pending", "claimedAt": "2030-01-01T00:00:00.000Z"},
        "garbage",
        {"id": "c2"},
        {"id": "c3", "donationId": "d3", "status": "pending", "claimedAt": "yesterday"},
    ]
    store = make_store(InMemoryStorage({DEFAULT_CLAIMS_KEY: json.dumps(raw)}))

    entries = await store.list_claims()

    assert [e.id for e in entries] == ["c1", "c3"]
    assert entries[0].claimed_at == datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert entries[1].claimed_at is None


@pytest.mark.asyncio
async def test_mutations_keep_malformed_entries():
    raw = [{"id": "c1", "donationId": "d1", "status": "pending"}, "garbage"]
    storage = InMemoryStorage({DEFAULT_CLAIMS_KEY: json.dumps(raw)})
    store = make_store(storage)

    await store.update_claim_status("c1", "cancelled")

    stored = json.loads(await storage.get_item(DEFAULT_CLAIMS_KEY))
    assert stored[1] == "garbage"
    assert stored[0]["status"] == "cancelled"


@pytest.mark.asyncio
async def test_concurrent_creates_lose_nothing():
    store = make_store(SlowStorage())

    results = await asyncio.gather(
        *(store.create_claim(f"d{i}", {}, "qr") for i in range(10))
    )

    assert all(r.ok for r in results)
    entries = await store.list_claims()
    assert sorted(e.donation_id for e in entries) == sorted(f"d{i}" for i in range(10))


@pytest.mark.asyncio
async def test_concurrent_creates_same_donation_yield_one_claim():
    store = make_store(SlowStorage())

    results = await asyncio.gather(*(store.create_claim("d1", {}, "qr") for _ in range(5)))

    assert sum(r.ok for r in results) == 1
    assert all(r.error is ClaimError.ALREADY_CLAIMED for r in results if not r.ok)
    assert len(await store.list_claims()) == 1


@pytest.mark.asyncio
async def test_invalidate_donation_cancels_pending_claims():
    store = make_store()
    result = await store.create_claim("d1", {}, "qr")
    await store.mark_synced(result.entry.id)
    await store.create_claim("d2", {}, "qr")

    assert await store.invalidate_donation("d1") == 1
    assert await store.invalidate_donation("d1") == 0

    by_donation = {e.donation_id: e for e in await store.list_claims()}
    assert by_donation["d1"].status == "cancelled"
    assert not by_donation["d1"].synced
    assert by_donation["d2"].status == "pending"


@pytest.mark.asyncio
async def test_reconcile_merges_remote_state():
    store = make_store()
    known = (await store.create_claim("d1", {"itemName": "Bread"}, "qr")).entry
    await store.mark_synced(known.id)
    removed = (await store.create_claim("d2", {}, "qr")).entry
    await store.mark_synced(removed.id)
    lost = (await store.create_claim("d3", {}, "qr")).entry
    offline = (await store.create_claim("d4", {}, "qr")).entry

    remote = [
        Claim(id=known.id, donation_id="d1", user_id="u1", status="picked_up", claimed_at=NOW),
        Claim(id="remote_d3", donation_id="d3", user_id="u1", status="pending", claimed_at=NOW),
        Claim(id="remote_d5", donation_id="d5", user_id="u1", status="pending", claimed_at=NOW),
    ]

    merged = await store.reconcile(remote)
    by_id = {e.id: e for e in merged}

    assert by_id[known.id].status == "picked_up"
    assert by_id[known.id].synced
    assert by_id[known.id].donation == {"itemName": "Bread"}
    assert removed.id not in by_id
    assert by_id[lost.id].status == "cancelled"
    assert by_id[offline.id].status == "pending"
    assert not by_id[offline.id].synced
    assert by_id["remote_d3"].synced
    assert by_id["remote_d5"].donation == {}

    assert {e.id for e in await store.list_claims()} == set(by_id)
    pending = [e for e in await store.list_claims() if e.status == "pending"]
    assert sorted(e.donation_id for e in pending) == ["d3", "d4", "d5"]


@pytest.mark.asyncio
async def test_reconcile_keeps_unsynced_status_change():
    store = make_store()
    entry = (await store.create_claim("d1", {"itemName": "Bread"}, "qr")).entry
    await store.mark_synced(entry.id)
    assert await store.update_claim_status(entry.id, "picked_up")

    remote = [Claim(id=entry.id, donation_id="d1", user_id="u1", status="pending")]
    merged = await store.reconcile(remote)

    assert merged[0].status == "picked_up"
    assert not merged[0].synced
    stored = await store.get_claim(entry.id)
    assert stored.status == "picked_up"
    assert not stored.synced


@pytest.mark.asyncio
async def test_reconcile_closed_remote_claim_overrides_offline_change():
    store = make_store()
    entry = (await store.create_claim("d1", {}, "qr")).entry
    await store.mark_synced(entry.id)
    assert await store.update_claim_status(entry.id, "picked_up")

    # Cancelled remotely in the meantime; picked_up is no longer reachable.
    remote = [Claim(id=entry.id, donation_id="d1", user_id="u1", status="cancelled")]
    merged = await store.reconcile(remote)

    assert merged[0].status == "cancelled"
    assert merged[0].synced


@pytest.mark.asyncio
async def test_entry_without_claimant_cannot_become_remote_claim():
    store = make_store()
    entry = (await store.create_claim("d1", {}, "qr")).entry
    assert entry.user_id is None

    with pytest.raises(ValueError):
        entry.to_claim()
    assert entry.to_claim("u1").user_id == "u1"
