from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from decentralhire.services.repository import (
    BUSINESS_KEY_FIELD,
    COLLECTIONS,
    Document,
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryValidationError,
    ensure_collection,
    strip_processed,
)


class InMemoryStore:
    """Process-local projection store used for local runs and tests.

    Every operation completes without suspending, so each call is atomic with
    respect to other coroutines on the same event loop.
    """

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, dict[str, Any]]] = {collection: {} for collection in COLLECTIONS}
        self.events: dict[str, dict[str, Any]] = {}
        self.writes: list[tuple[str, str, str]] = []

    async def close(self) -> None:
        return None

    async def find_one(self, collection: str, field_name: str, value: Any) -> Document | None:
        ensure_collection(collection)
        for document_id, data in self.documents[collection].items():
            if data.get(field_name) == value:
                return Document(id=document_id, data=copy.deepcopy(data))
        return None

    async def create(self, collection: str, data: dict[str, Any]) -> Document:
        ensure_collection(collection)
        key = data.get(BUSINESS_KEY_FIELD)
        if not isinstance(key, str) or not key:
            raise RepositoryValidationError(f"{BUSINESS_KEY_FIELD} must be a non-empty string")
        if self._find_id(collection, BUSINESS_KEY_FIELD, key) is not None:
            raise RepositoryConflictError(f"{collection} document already exists: {key}")
        document_id = str(uuid4())
        self.documents[collection][document_id] = copy.deepcopy(data)
        self.writes.append(("create", collection, document_id))
        return Document(id=document_id, data=copy.deepcopy(data))

    async def update(self, collection: str, document_id: str, data: dict[str, Any]) -> Document:
        ensure_collection(collection)
        if document_id not in self.documents[collection]:
            raise RepositoryNotFoundError(f"{collection} document not found: {document_id}")
        self.documents[collection][document_id] = copy.deepcopy(data)
        self.writes.append(("update", collection, document_id))
        return Document(id=document_id, data=copy.deepcopy(data))

    async def upsert(
        self,
        collection: str,
        key_field: str,
        key: str,
        data: dict[str, Any],
    ) -> tuple[Document, bool]:
        ensure_collection(collection)
        if not key:
            raise RepositoryValidationError(f"{key_field} must be a non-empty string")
        document = {**copy.deepcopy(data), key_field: key}
        document_id = self._find_id(collection, key_field, key)
        if document_id is None:
            document_id = str(uuid4())
            self.documents[collection][document_id] = document
            self.writes.append(("create", collection, document_id))
            return Document(id=document_id, data=copy.deepcopy(document)), True

        merged = {**self.documents[collection][document_id], **document}
        self.documents[collection][document_id] = merged
        self.writes.append(("update", collection, document_id))
        return Document(id=document_id, data=copy.deepcopy(merged)), False

    async def list_documents(
        self,
        collection: str,
        filters: dict[str, Any],
        *,
        limit: int,
        offset: int,
    ) -> list[Document]:
        ensure_collection(collection)
        matched = [
            Document(id=document_id, data=copy.deepcopy(data))
            for document_id, data in self.documents[collection].items()
            if all(data.get(name) == value for name, value in filters.items())
        ]
        return matched[offset : offset + limit]

    async def get_event(self, event_id: str) -> dict[str, Any] | None:
        record = self.events.get(event_id)
        return self._event_view(record) if record else None

    async def put_event(
        self,
        event_id: str,
        payload: dict[str, Any],
    ) -> tuple[dict[str, Any] | None, dict[str, Any]]:
        existing = self.events.get(event_id)
        before = self._event_view(existing) if existing else None
        if existing is not None and existing["processed"]:
            return before, before

        if existing is None:
            existing = {
                "id": event_id,
                "processed": False,
                "attempts": 0,
                "lease_expires_at": None,
                "received_at": datetime.now(timezone.utc),
            }
            self.events[event_id] = existing
        existing["payload"] = strip_processed(copy.deepcopy(payload))
        existing["processed"] = bool(payload.get("processed"))
        return before, self._event_view(existing)

    async def claim_event(self, event_id: str, lease_seconds: int) -> bool:
        record = self.events.get(event_id)
        now = datetime.now(timezone.utc)
        if record is None or record["processed"]:
            return False
        lease = record["lease_expires_at"]
        if lease is not None and lease > now:
            return False
        record["lease_expires_at"] = now + timedelta(seconds=lease_seconds)
        record["attempts"] += 1
        return True

    async def release_event(self, event_id: str) -> None:
        record = self.events.get(event_id)
        if record is not None and not record["processed"]:
            record["lease_expires_at"] = None

    async def mark_processed(self, event_id: str, payload: dict[str, Any]) -> bool:
        record = self.events.get(event_id)
        if record is None or record["processed"]:
            return False
        record["payload"] = strip_processed(copy.deepcopy(payload))
        record["processed"] = True
        record["lease_expires_at"] = None
        return True

    async def list_pending_events(self, *, limit: int, max_attempts: int) -> list[dict[str, Any]]:
        now = datetime.now(timezone.utc)
        pending = [
            record
            for record in sorted(self.events.values(), key=lambda item: item["received_at"])
            if not record["processed"]
            and record["attempts"] < max(1, max_attempts)
            and (record["lease_expires_at"] is None or record["lease_expires_at"] <= now)
        ]
        return [self._event_view(record) for record in pending[: max(1, limit)]]

    def _find_id(self, collection: str, field_name: str, value: Any) -> str | None:
        for document_id, data in self.documents[collection].items():
            if data.get(field_name) == value:
                return document_id
        return None

    @staticmethod
    def _event_view(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "payload": copy.deepcopy(record["payload"]),
            "processed": record["processed"],
            "attempts": record["attempts"],
        }
