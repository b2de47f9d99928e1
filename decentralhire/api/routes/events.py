from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from decentralhire.api.dependencies import get_gate
from decentralhire.core.identity import as_text, event_fingerprint
from decentralhire.core.security import require_ingest_key
from decentralhire.schemas.events import EventChange, EventIngestOut, EventRecord, EventRecordOut
from decentralhire.services.repository import RepositoryError, RepositoryUnavailableError, get_repository

router = APIRouter()


@router.post("", response_model=EventIngestOut, dependencies=[Depends(require_ingest_key)])
async def ingest_event(
    payload: dict[str, Any] = Body(...),
    repository=Depends(get_repository),
    gate=Depends(get_gate),
) -> EventIngestOut:
    fields = {key: value for key, value in payload.items() if key != "id"}
    event_id = as_text(payload.get("id")) or event_fingerprint(fields)

    try:
        before, after = await repository.put_event(event_id, fields)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    change = EventChange(
        event_id=event_id,
        before=_snapshot(before),
        after=_snapshot(after),
    )
    outcome = await gate.handle_change(change)

    try:
        stored = await repository.get_event(event_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return EventIngestOut(
        event_id=event_id,
        processed=bool(stored and stored["processed"]),
        outcome=outcome.as_dict() if outcome is not None else None,
    )


@router.get("/{event_id}", response_model=EventRecordOut)
async def get_event(event_id: str, repository=Depends(get_repository)) -> EventRecordOut:
    try:
        record = await repository.get_event(event_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="event not found")
    return EventRecordOut(**record)


def _snapshot(record: dict[str, Any] | None) -> EventRecord | None:
    if record is None:
        return None
    return EventRecord.from_payload(record["payload"], processed=record["processed"])
