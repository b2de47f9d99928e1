from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from decentralhire.core.identity import as_text

RESERVED_KEYS = {"name", "processed"}


class EventName(str, Enum):
    JOB_POSTING_CREATED = "JobPostingCreatedEvent"
    JOB_POSTING_CLOSED = "JobPostingClosedEvent"
    JOB_APPLICATION_CREATED = "JobApplicationCreatedEvent"
    JOB_APPLICATION_OFFER_SENT = "JobApplicationOfferSentEvent"
    JOB_APPLICATION_OFFER_ACCEPTED = "JobApplicationOfferAcceptedEvent"
    JOB_APPLICATION_OFFER_DECLINED = "JobApplicationOfferDeclinedEvent"
    JOB_APPLICATION_APPLICATION_DECLINED = "JobApplicationApplicationDeclinedEvent"
    JOB_APPLICATION_HIRED = "JobApplicationHiredEvent"

    @classmethod
    def parse(cls, raw: str | None) -> "EventName | None":
        try:
            return cls(raw)
        except ValueError:
            return None


class EventRecord(BaseModel):
    """One inbound event: its type tag, processed flag and the verbatim event fields."""

    name: str = ""
    processed: bool = False
    event_fields: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, processed: bool | None = None) -> "EventRecord":
        return cls(
            name=as_text(payload.get("name")),
            processed=bool(payload.get("processed")) if processed is None else processed,
            event_fields={key: value for key, value in payload.items() if key not in RESERVED_KEYS},
        )

    def text(self, *keys: str) -> str:
        for key in keys:
            value = as_text(self.event_fields.get(key))
            if value:
                return value
        return ""

    def to_payload(self) -> dict[str, Any]:
        named = {"name": self.name} if self.name else {}
        return {**named, **self.event_fields, "processed": self.processed}


class EventChange(BaseModel):
    event_id: str
    before: EventRecord | None = None
    after: EventRecord | None = None


class EventIngestOut(BaseModel):
    event_id: str
    processed: bool
    outcome: dict[str, Any] | None = None


class EventRecordOut(BaseModel):
    id: str
    processed: bool
    attempts: int = 0
    payload: dict[str, Any] = Field(default_factory=dict)
