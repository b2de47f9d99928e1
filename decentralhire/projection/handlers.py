from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from decentralhire.projection.resolver import resolve_by_contract_address
from decentralhire.projection.results import (
    ErrorKind,
    OutcomeStatus,
    ProjectionOutcome,
    applied,
    failed,
)
from decentralhire.projection.status import (
    TransitionPolicy,
    is_transition_allowed,
    parse_status,
    target_status,
)
from decentralhire.projection.validation import (
    ApplicationFields,
    extract_application_fields,
    extract_posting_fields,
    missing_application_fields,
    missing_posting_fields,
)
from decentralhire.schemas.applications import JobApplication, JobApplicationStatus
from decentralhire.schemas.events import EventName, EventRecord
from decentralhire.schemas.postings import SCHEMA_VERSION, JobPosting
from decentralhire.services.repository import (
    BUSINESS_KEY_FIELD,
    JOB_APPLICATIONS,
    JOB_POSTINGS,
    DocumentRepository,
    RepositoryError,
)

logger = logging.getLogger(__name__)

JOB_POSTING_ADDRESS_KEYS = ("jobPostingAddress", "jobPostingAddressLowerCase")


@dataclass(slots=True)
class ProjectionContext:
    repository: DocumentRepository
    transition_policy: TransitionPolicy = TransitionPolicy.PERMISSIVE
    require_job_posting_address: bool = True


async def project_posting_created(event: EventRecord, context: ProjectionContext) -> ProjectionOutcome:
    event_name = EventName.JOB_POSTING_CREATED.value
    fields = extract_posting_fields(event)
    missing = missing_posting_fields(fields)
    if missing:
        logger.info(
            "skipping %s: missing %s (companyProfileAddress=%r, contractAddress=%r)",
            event_name,
            ", ".join(missing),
            fields.company_profile_address,
            fields.contract_address,
        )
        return ProjectionOutcome(
            event_name=event_name,
            status=OutcomeStatus.SKIPPED,
            error_kind=ErrorKind.VALIDATION,
            detail=f"missing {', '.join(missing)}",
            collection=JOB_POSTINGS,
        )

    posting = JobPosting(
        contract_address=fields.contract_address,
        company_address=fields.company_profile_address,
        job_title=fields.job_title,
        country=fields.country,
        city=fields.city,
        is_remote=fields.is_remote,
        is_active=True,
        contract_address_lower_case=fields.contract_address_lower_case,
        company_address_lower_case=fields.company_address_lower_case,
    )
    try:
        document, created = await context.repository.upsert(
            JOB_POSTINGS,
            BUSINESS_KEY_FIELD,
            fields.contract_address,
            posting.to_document(),
        )
    except RepositoryError as exc:
        return _store_failure(event_name, JOB_POSTINGS, exc)

    logger.info("projected %s contractAddress=%s created=%s", event_name, fields.contract_address, created)
    return applied(event_name, collection=JOB_POSTINGS, document_id=document.id, created=created)


async def project_posting_closed(event: EventRecord, context: ProjectionContext) -> ProjectionOutcome:
    event_name = EventName.JOB_POSTING_CLOSED.value
    fields = extract_posting_fields(event)
    missing = missing_posting_fields(fields)
    if missing:
        logger.error(
            "failed to process %s: missing %s (companyProfileAddress=%r, contractAddress=%r)",
            event_name,
            ", ".join(missing),
            fields.company_profile_address,
            fields.contract_address,
        )
        return failed(event_name, ErrorKind.VALIDATION, f"missing {', '.join(missing)}", collection=JOB_POSTINGS)

    try:
        existing = await resolve_by_contract_address(context.repository, JOB_POSTINGS, fields.contract_address)
        if existing is None:
            logger.error(
                "failed to process %s: JobPosting not found (contractAddress=%s)",
                event_name,
                fields.contract_address,
            )
            return failed(
                event_name,
                ErrorKind.NOT_FOUND,
                f"JobPosting not found (contractAddress: {fields.contract_address})",
                collection=JOB_POSTINGS,
            )

        document = await context.repository.update(
            JOB_POSTINGS,
            existing.id,
            {
                **existing.data,
                "contractAddress": fields.contract_address,
                "companyAddress": fields.company_profile_address,
                "isActive": False,
                "contractAddressLowerCase": fields.contract_address_lower_case,
                "companyAddressLowerCase": fields.company_address_lower_case,
                "schemaVersion": SCHEMA_VERSION,
            },
        )
    except RepositoryError as exc:
        return _store_failure(event_name, JOB_POSTINGS, exc)

    logger.info("projected %s contractAddress=%s", event_name, fields.contract_address)
    return applied(event_name, collection=JOB_POSTINGS, document_id=document.id)


async def project_application_created(event: EventRecord, context: ProjectionContext) -> ProjectionOutcome:
    event_name = EventName.JOB_APPLICATION_CREATED.value
    fields, failure = _application_fields_or_failure(event_name, event, context)
    if failure is not None:
        return failure

    status = JobApplicationStatus.IN_PROGRESS
    try:
        if context.transition_policy == TransitionPolicy.STRICT:
            # A late re-delivery must not roll a progressed application back.
            existing = await resolve_by_contract_address(
                context.repository,
                JOB_APPLICATIONS,
                fields.contract_address,
            )
            current = parse_status(existing.data.get("status")) if existing else None
            if current is not None:
                status = current

        document, created = await context.repository.upsert(
            JOB_APPLICATIONS,
            BUSINESS_KEY_FIELD,
            fields.contract_address,
            _application_document(fields, status),
        )
    except RepositoryError as exc:
        return _store_failure(event_name, JOB_APPLICATIONS, exc)

    logger.info("projected %s contractAddress=%s created=%s", event_name, fields.contract_address, created)
    return applied(event_name, collection=JOB_APPLICATIONS, document_id=document.id, created=created)


async def project_application_status_change(event: EventRecord, context: ProjectionContext) -> ProjectionOutcome:
    parsed_name = EventName.parse(event.name)
    target = target_status(parsed_name) if parsed_name is not None else None
    if target is None:
        logger.error("failed to process %r: not an application status event", event.name)
        return failed(
            event.name,
            ErrorKind.UNEXPECTED,
            f"{event.name!r} does not drive an application status",
            collection=JOB_APPLICATIONS,
        )

    event_name = parsed_name.value
    fields, failure = _application_fields_or_failure(event_name, event, context)
    if failure is not None:
        return failure

    try:
        existing = await resolve_by_contract_address(context.repository, JOB_APPLICATIONS, fields.contract_address)
        if existing is None:
            logger.error(
                "failed to process %s: JobApplication not found (contractAddress=%s)",
                event_name,
                fields.contract_address,
            )
            return failed(
                event_name,
                ErrorKind.NOT_FOUND,
                f"JobApplication not found (contractAddress: {fields.contract_address})",
                collection=JOB_APPLICATIONS,
            )

        current = parse_status(existing.data.get("status"))
        if not is_transition_allowed(current, target, context.transition_policy):
            logger.error(
                "failed to process %s: illegal transition %s -> %s (contractAddress=%s)",
                event_name,
                current.value if current else None,
                target.value,
                fields.contract_address,
            )
            return failed(
                event_name,
                ErrorKind.CONFLICT,
                f"illegal status transition {current.value if current else None} -> {target.value}",
                collection=JOB_APPLICATIONS,
            )

        document = await context.repository.update(
            JOB_APPLICATIONS,
            existing.id,
            {**existing.data, **_application_document(fields, target)},
        )
    except RepositoryError as exc:
        return _store_failure(event_name, JOB_APPLICATIONS, exc)

    logger.info("projected %s contractAddress=%s status=%s", event_name, fields.contract_address, target.value)
    return applied(event_name, collection=JOB_APPLICATIONS, document_id=document.id)


def _application_fields_or_failure(
    event_name: str,
    event: EventRecord,
    context: ProjectionContext,
) -> tuple[ApplicationFields, ProjectionOutcome | None]:
    fields = extract_application_fields(event)
    missing = missing_application_fields(fields, require_job_posting_address=context.require_job_posting_address)
    if not missing:
        return fields, None

    logger.error(
        "failed to process %s: missing %s (applicant=%r, contractAddress=%r, jobPostingAddress=%r)",
        event_name,
        ", ".join(missing),
        fields.applicant_address,
        fields.contract_address,
        fields.job_posting_address,
    )
    return fields, failed(event_name, ErrorKind.VALIDATION, f"missing {', '.join(missing)}", collection=JOB_APPLICATIONS)


def _application_document(fields: ApplicationFields, status: JobApplicationStatus) -> dict[str, Any]:
    document = JobApplication(
        contract_address=fields.contract_address,
        applicant_address=fields.applicant_address,
        job_posting_address=fields.job_posting_address or None,
        status=status,
        contract_address_lower_case=fields.contract_address_lower_case,
        applicant_address_lower_case=fields.applicant_address_lower_case,
        job_posting_address_lower_case=fields.job_posting_address_lower_case,
    ).to_document()
    if not fields.job_posting_address:
        # Keep whatever posting link an earlier event already projected.
        for key in JOB_POSTING_ADDRESS_KEYS:
            document.pop(key, None)
    return document


def _store_failure(event_name: str, collection: str, exc: RepositoryError) -> ProjectionOutcome:
    logger.error("failed to process %s: store error on %s: %s", event_name, collection, exc)
    return failed(event_name, ErrorKind.STORE, str(exc) or type(exc).__name__, collection=collection)
