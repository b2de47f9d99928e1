"""Required-field checks and field extraction for inbound chain events."""

from __future__ import annotations

from dataclasses import dataclass

from decentralhire.core.identity import lower_address
from decentralhire.schemas.events import EventRecord


@dataclass(slots=True)
class PostingFields:
    company_profile_address: str
    contract_address: str
    job_title: str | None
    country: str | None
    city: str | None
    is_remote: bool

    @property
    def company_address_lower_case(self) -> str:
        return lower_address(self.company_profile_address)

    @property
    def contract_address_lower_case(self) -> str:
        return lower_address(self.contract_address)


@dataclass(slots=True)
class ApplicationFields:
    applicant_address: str
    contract_address: str
    job_posting_address: str

    @property
    def applicant_address_lower_case(self) -> str:
        return lower_address(self.applicant_address)

    @property
    def contract_address_lower_case(self) -> str:
        return lower_address(self.contract_address)

    @property
    def job_posting_address_lower_case(self) -> str:
        return lower_address(self.job_posting_address)


def extract_posting_fields(event: EventRecord) -> PostingFields:
    return PostingFields(
        company_profile_address=event.text("_companyProfileAddress"),
        contract_address=event.text("_contractAddress"),
        job_title=event.text("_title") or None,
        country=event.text("_country") or None,
        city=event.text("_city") or None,
        is_remote=event.text("_isRemote") == "true",
    )


def extract_application_fields(event: EventRecord) -> ApplicationFields:
    # Earlier contract revisions emitted the applicant as the transaction sender.
    return ApplicationFields(
        applicant_address=event.text("_applicant", "_from", "from"),
        contract_address=event.text("_contractAddress"),
        job_posting_address=event.text("_jobPostingAddress"),
    )


def missing_posting_fields(fields: PostingFields) -> list[str]:
    missing: list[str] = []
    if not fields.company_profile_address:
        missing.append("companyProfileAddress")
    if not fields.contract_address:
        missing.append("contractAddress")
    return missing


def missing_application_fields(fields: ApplicationFields, *, require_job_posting_address: bool) -> list[str]:
    missing: list[str] = []
    if not fields.applicant_address:
        missing.append("applicant")
    if not fields.contract_address:
        missing.append("contractAddress")
    if require_job_posting_address and not fields.job_posting_address:
        missing.append("jobPostingAddress")
    return missing
