from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    IGNORED = "ignored"
    FAILED = "failed"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORE = "store"
    UNEXPECTED = "unexpected"


@dataclass(slots=True)
class ProjectionOutcome:
    event_name: str
    status: OutcomeStatus
    error_kind: ErrorKind | None = None
    detail: str | None = None
    collection: str | None = None
    document_id: str | None = None
    created: bool = False

    @property
    def ok(self) -> bool:
        return self.status != OutcomeStatus.FAILED

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        payload["error_kind"] = self.error_kind.value if self.error_kind else None
        return payload


def applied(event_name: str, *, collection: str, document_id: str, created: bool = False) -> ProjectionOutcome:
    return ProjectionOutcome(
        event_name=event_name,
        status=OutcomeStatus.APPLIED,
        collection=collection,
        document_id=document_id,
        created=created,
    )


def failed(event_name: str, kind: ErrorKind, detail: str, *, collection: str | None = None) -> ProjectionOutcome:
    return ProjectionOutcome(
        event_name=event_name,
        status=OutcomeStatus.FAILED,
        error_kind=kind,
        detail=detail,
        collection=collection,
    )
