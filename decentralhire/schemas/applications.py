from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from decentralhire.schemas.postings import SCHEMA_VERSION


class JobApplicationStatus(str, Enum):
    IN_PROGRESS = "InProgress"
    OFFER_SENT = "OfferSent"
    OFFER_ACCEPTED = "OfferAccepted"
    OFFER_DECLINED = "OfferDeclined"
    APPLICATION_DECLINED = "ApplicationDeclined"
    HIRED = "Hired"

    @classmethod
    def parse(cls, raw: object) -> "JobApplicationStatus | None":
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, int) and not isinstance(raw, bool):
            # Earlier revisions persisted the status as its declaration index.
            ordered = list(cls)
            return ordered[raw] if 0 <= raw < len(ordered) else None
        try:
            return cls(raw)
        except ValueError:
            return None


class JobApplication(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)

    contract_address: str
    applicant_address: str
    job_posting_address: str | None = None
    status: JobApplicationStatus = JobApplicationStatus.IN_PROGRESS
    contract_address_lower_case: str = ""
    applicant_address_lower_case: str = ""
    job_posting_address_lower_case: str = ""
    schema_version: int = SCHEMA_VERSION

    @field_validator("status", mode="before")
    @classmethod
    def read_legacy_status(cls, value: object) -> object:
        parsed = JobApplicationStatus.parse(value)
        return parsed if parsed is not None else value

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class JobApplicationOut(JobApplication):
    id: str
