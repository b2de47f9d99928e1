from __future__ import annotations

import asyncio

import pytest

from decentralhire.services.repository import (
    JOB_APPLICATIONS,
    JOB_POSTINGS,
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryValidationError,
)


def test_upsert_creates_then_merges_by_business_key(store) -> None:
    async def run():
        first, created = await store.upsert(JOB_POSTINGS, "contractAddress", "0xB", {"jobTitle": "A", "city": "NY"})
        second, created_again = await store.upsert(JOB_POSTINGS, "contractAddress", "0xB", {"jobTitle": "B"})
        return first, created, second, created_again

    first, created, second, created_again = asyncio.run(run())

    assert created is True
    assert created_again is False
    assert second.id == first.id
    assert second.data == {"jobTitle": "B", "city": "NY", "contractAddress": "0xB"}


def test_find_one_returns_first_match_or_none(store) -> None:
    async def run():
        await store.create(JOB_APPLICATIONS, {"contractAddress": "0x1", "status": "InProgress"})
        return (
            await store.find_one(JOB_APPLICATIONS, "contractAddress", "0x1"),
            await store.find_one(JOB_APPLICATIONS, "contractAddress", "0x2"),
        )

    found, missing = asyncio.run(run())

    assert found is not None and found.data["status"] == "InProgress"
    assert missing is None


def test_create_rejects_duplicate_business_key(store) -> None:
    asyncio.run(store.create(JOB_POSTINGS, {"contractAddress": "0xB"}))
    with pytest.raises(RepositoryConflictError):
        asyncio.run(store.create(JOB_POSTINGS, {"contractAddress": "0xB"}))


def test_update_unknown_document_raises_not_found(store) -> None:
    with pytest.raises(RepositoryNotFoundError):
        asyncio.run(store.update(JOB_POSTINGS, "missing", {"contractAddress": "0xB"}))


def test_unknown_collection_is_rejected(store) -> None:
    with pytest.raises(RepositoryValidationError):
        asyncio.run(store.find_one("Companies", "contractAddress", "0x1"))


def test_list_documents_filters_and_pages(store) -> None:
    async def run():
        for index, country in enumerate(["US", "US", "DE"]):
            await store.upsert(JOB_POSTINGS, "contractAddress", f"0x{index}", {"country": country, "isActive": True})
        return (
            await store.list_documents(JOB_POSTINGS, {"country": "US", "isActive": True}, limit=10, offset=0),
            await store.list_documents(JOB_POSTINGS, {"country": "US"}, limit=1, offset=1),
        )

    everything, second_page = asyncio.run(run())

    assert [document.data["contractAddress"] for document in everything] == ["0x0", "0x1"]
    assert [document.data["contractAddress"] for document in second_page] == ["0x1"]


def test_event_claim_is_exclusive_and_processed_never_reverts(store) -> None:
    async def run():
        await store.put_event("evt-1", {"name": "JobPostingCreatedEvent"})
        first_claim = await store.claim_event("evt-1", lease_seconds=60)
        second_claim = await store.claim_event("evt-1", lease_seconds=60)
        marked = await store.mark_processed("evt-1", {"name": "JobPostingCreatedEvent"})
        marked_again = await store.mark_processed("evt-1", {"name": "JobPostingCreatedEvent"})
        before, after = await store.put_event("evt-1", {"name": "JobPostingCreatedEvent", "_title": "changed"})
        claim_after_processed = await store.claim_event("evt-1", lease_seconds=60)
        return first_claim, second_claim, marked, marked_again, before, after, claim_after_processed

    first_claim, second_claim, marked, marked_again, before, after, claim_after_processed = asyncio.run(run())

    assert first_claim is True
    assert second_claim is False
    assert marked is True
    assert marked_again is False
    assert before == after
    assert after["processed"] is True
    assert "_title" not in after["payload"]
    assert claim_after_processed is False


def test_delivered_processed_flag_is_kept_outside_the_payload(store) -> None:
    async def run():
        delivered = await store.put_event("evt-1", {"name": "X", "processed": True})
        pending = await store.put_event("evt-2", {"name": "X"})
        return delivered, pending, await store.claim_event("evt-1", lease_seconds=60)

    (_, after), (_, pending), claimed = asyncio.run(run())

    assert after["processed"] is True
    assert pending["processed"] is False
    assert claimed is False
    assert "processed" not in after["payload"]


def test_pending_events_respect_attempt_limit(store) -> None:
    async def run():
        await store.put_event("evt-1", {"name": "X"})
        await store.claim_event("evt-1", lease_seconds=60)
        await store.release_event("evt-1")
        return (
            await store.list_pending_events(limit=10, max_attempts=1),
            await store.list_pending_events(limit=10, max_attempts=2),
        )

    exhausted, retryable = asyncio.run(run())

    assert exhausted == []
    assert [record["id"] for record in retryable] == ["evt-1"]
