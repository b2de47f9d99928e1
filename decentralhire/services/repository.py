from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Protocol

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from decentralhire.core.config import get_settings

JOB_POSTINGS = "JobPostings"
JOB_APPLICATIONS = "JobApplications"
COLLECTIONS = (JOB_POSTINGS, JOB_APPLICATIONS)
BUSINESS_KEY_FIELD = "contractAddress"


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when a write collides with an existing business key."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


@dataclass(slots=True)
class Document:
    id: str
    data: dict[str, Any] = field(default_factory=dict)


class DocumentRepository(Protocol):
    async def find_one(self, collection: str, field_name: str, value: Any) -> Document | None: ...

    async def create(self, collection: str, data: dict[str, Any]) -> Document: ...

    async def update(self, collection: str, document_id: str, data: dict[str, Any]) -> Document: ...

    async def upsert(
        self,
        collection: str,
        key_field: str,
        key: str,
        data: dict[str, Any],
    ) -> tuple[Document, bool]: ...

    async def list_documents(
        self,
        collection: str,
        filters: dict[str, Any],
        *,
        limit: int,
        offset: int,
    ) -> list[Document]: ...


class EventLog(Protocol):
    async def get_event(self, event_id: str) -> dict[str, Any] | None: ...

    async def put_event(
        self,
        event_id: str,
        payload: dict[str, Any],
    ) -> tuple[dict[str, Any] | None, dict[str, Any]]: ...

    async def claim_event(self, event_id: str, lease_seconds: int) -> bool: ...

    async def release_event(self, event_id: str) -> None: ...

    async def mark_processed(self, event_id: str, payload: dict[str, Any]) -> bool: ...

    async def list_pending_events(self, *, limit: int, max_attempts: int) -> list[dict[str, Any]]: ...


class ProjectionRepository(DocumentRepository, EventLog, Protocol):
    async def close(self) -> None: ...


def ensure_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise RepositoryValidationError(f"unknown collection: {collection}")


def strip_processed(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key != "processed"}


class PostgresRepository:
    """Projection store on Postgres: jsonb documents keyed by (collection, business_key)."""

    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def find_one(self, collection: str, field_name: str, value: Any) -> Document | None:
        ensure_collection(collection)
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """
                select id::text as id, data
                from projection_documents
                where collection = $1 and data @> $2::jsonb
                order by created_at asc
                limit 1
                """,
                collection,
                json.dumps({field_name: value}),
            )
        return self._row_to_document(row) if row else None

    async def create(self, collection: str, data: dict[str, Any]) -> Document:
        ensure_collection(collection)
        key = data.get(BUSINESS_KEY_FIELD)
        if not isinstance(key, str) or not key:
            raise RepositoryValidationError(f"{BUSINESS_KEY_FIELD} must be a non-empty string")
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """
                insert into projection_documents (collection, business_key, data)
                values ($1, $2, $3::jsonb)
                returning id::text as id, data
                """,
                collection,
                key,
                json.dumps(data),
            )
        return self._row_to_document(row)

    async def update(self, collection: str, document_id: str, data: dict[str, Any]) -> Document:
        ensure_collection(collection)
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """
                update projection_documents
                set data = $3::jsonb, updated_at = now()
                where id = $1::uuid and collection = $2
                returning id::text as id, data
                """,
                document_id,
                collection,
                json.dumps(data),
            )
        if not row:
            raise RepositoryNotFoundError(f"{collection} document not found: {document_id}")
        return self._row_to_document(row)

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
        document = {**data, key_field: key}
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """
                insert into projection_documents (collection, business_key, data)
                values ($1, $2, $3::jsonb)
                on conflict (collection, business_key) do update
                set data = projection_documents.data || excluded.data, updated_at = now()
                returning id::text as id, data, (xmax = 0) as created
                """,
                collection,
                key,
                json.dumps(document),
            )
        return self._row_to_document(row), bool(row["created"])

    async def list_documents(
        self,
        collection: str,
        filters: dict[str, Any],
        *,
        limit: int,
        offset: int,
    ) -> list[Document]:
        ensure_collection(collection)
        async with self._connection() as conn:
            rows = await conn.fetch(
                """
                select id::text as id, data
                from projection_documents
                where collection = $1 and data @> $2::jsonb
                order by updated_at desc, id asc
                limit $3 offset $4
                """,
                collection,
                json.dumps(filters),
                limit,
                offset,
            )
        return [self._row_to_document(row) for row in rows]

    async def get_event(self, event_id: str) -> dict[str, Any] | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                "select id, payload, processed, attempts from chain_events where id = $1",
                event_id,
            )
        return self._event_row_to_dict(row) if row else None

    async def put_event(
        self,
        event_id: str,
        payload: dict[str, Any],
    ) -> tuple[dict[str, Any] | None, dict[str, Any]]:
        async with self._connection() as conn:
            async with conn.transaction():
                existing = await conn.fetchrow(
                    """
                    select id, payload, processed, attempts
                    from chain_events
                    where id = $1
                    for update
                    """,
                    event_id,
                )
                before = self._event_row_to_dict(existing) if existing else None
                if before is not None and before["processed"]:
                    return before, before

                row = await conn.fetchrow(
                    """
                    insert into chain_events (id, payload, processed, processed_at)
                    values ($1, $2::jsonb, $3, case when $3 then now() end)
                    on conflict (id) do update
                    set payload = excluded.payload,
                        processed = excluded.processed,
                        processed_at = excluded.processed_at
                    returning id, payload, processed, attempts
                    """,
                    event_id,
                    json.dumps(strip_processed(payload)),
                    bool(payload.get("processed")),
                )
        return before, self._event_row_to_dict(row)

    async def claim_event(self, event_id: str, lease_seconds: int) -> bool:
        async with self._connection() as conn:
            claimed = await conn.fetchval(
                """
                update chain_events
                set
                  lease_expires_at = now() + ($2::int * interval '1 second'),
                  attempts = attempts + 1
                where id = $1
                  and processed = false
                  and (lease_expires_at is null or lease_expires_at <= now())
                returning id
                """,
                event_id,
                lease_seconds,
            )
        return claimed is not None

    async def release_event(self, event_id: str) -> None:
        async with self._connection() as conn:
            await conn.execute(
                "update chain_events set lease_expires_at = null where id = $1 and processed = false",
                event_id,
            )

    async def mark_processed(self, event_id: str, payload: dict[str, Any]) -> bool:
        async with self._connection() as conn:
            marked = await conn.fetchval(
                """
                update chain_events
                set
                  payload = $2::jsonb,
                  processed = true,
                  processed_at = now(),
                  lease_expires_at = null
                where id = $1 and processed = false
                returning id
                """,
                event_id,
                json.dumps(strip_processed(payload)),
            )
        return marked is not None

    async def list_pending_events(self, *, limit: int, max_attempts: int) -> list[dict[str, Any]]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                """
                select id, payload, processed, attempts
                from chain_events
                where processed = false
                  and attempts < $2
                  and (lease_expires_at is null or lease_expires_at <= now())
                order by received_at asc
                limit $1
                """,
                max(1, limit),
                max(1, max_attempts),
            )
        return [self._event_row_to_dict(row) for row in rows]

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                yield conn
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError(str(exc)) from exc
        except pg_exc.DataError as exc:
            raise RepositoryValidationError(str(exc)) from exc
        except (asyncpg.PostgresError, OSError) as exc:
            raise RepositoryUnavailableError("database operation failed") from exc

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("DH_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _decode_json(value: Any) -> dict[str, Any]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return {}
        return value if isinstance(value, dict) else {}

    @classmethod
    def _row_to_document(cls, row: asyncpg.Record) -> Document:
        return Document(id=row["id"], data=cls._decode_json(row["data"]))

    @classmethod
    def _event_row_to_dict(cls, row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "payload": cls._decode_json(row["payload"]),
            "processed": bool(row["processed"]),
            "attempts": int(row["attempts"]),
        }


@lru_cache
def get_repository() -> ProjectionRepository:
    settings = get_settings()
    if not settings.database_url:
        from decentralhire.services.store import InMemoryStore

        return InMemoryStore()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
