from __future__ import annotations

import asyncio

from conftest import application_event
from decentralhire.projection.handlers import ProjectionContext, project_application_status_change
from decentralhire.projection.results import ErrorKind, OutcomeStatus
from decentralhire.projection.router import route_event
from decentralhire.projection.status import TransitionPolicy
from decentralhire.schemas.events import EventRecord
from decentralhire.services.repository import JOB_APPLICATIONS, JOB_POSTINGS, RepositoryUnavailableError
from decentralhire.services.store import InMemoryStore


def _project(store: InMemoryStore, payload: dict, **context_kwargs):
    context = ProjectionContext(repository=store, **context_kwargs)
    return asyncio.run(route_event(EventRecord.from_payload(payload), context))


def _only_document(store: InMemoryStore, collection: str) -> dict:
    documents = list(store.documents[collection].values())
    assert len(documents) == 1
    return documents[0]


def test_posting_created_projects_new_active_posting(store, posting_created_event) -> None:
    outcome = _project(store, posting_created_event)

    assert outcome.status == OutcomeStatus.APPLIED
    assert outcome.created is True
    posting = _only_document(store, JOB_POSTINGS)
    assert {
        "contractAddress": "0xB",
        "companyAddress": "0xA",
        "jobTitle": "Engineer",
        "country": "US",
        "city": "NY",
        "isRemote": True,
        "isActive": True,
    }.items() <= posting.items()
    assert posting["contractAddressLowerCase"] == "0xb"
    assert posting["schemaVersion"] == 2


def test_redelivered_posting_created_updates_same_document(store, posting_created_event) -> None:
    first = _project(store, posting_created_event)
    second = _project(store, {**posting_created_event, "_title": "Staff Engineer"})

    assert second.created is False
    assert second.document_id == first.document_id
    posting = _only_document(store, JOB_POSTINGS)
    assert posting["contractAddress"] == "0xB"
    assert posting["jobTitle"] == "Staff Engineer"


def test_posting_created_reactivates_closed_posting(store, posting_created_event) -> None:
    _project(store, posting_created_event)
    _project(store, {**posting_created_event, "name": "JobPostingClosedEvent"})
    assert _only_document(store, JOB_POSTINGS)["isActive"] is False

    _project(store, posting_created_event)
    assert _only_document(store, JOB_POSTINGS)["isActive"] is True


def test_posting_created_without_contract_address_is_skipped(store, posting_created_event) -> None:
    payload = dict(posting_created_event)
    payload.pop("_contractAddress")

    outcome = _project(store, payload)

    assert outcome.status == OutcomeStatus.SKIPPED
    assert outcome.ok
    assert outcome.error_kind == ErrorKind.VALIDATION
    assert store.writes == []


def test_posting_closed_for_unknown_contract_fails_without_writes(store, posting_created_event) -> None:
    outcome = _project(store, {**posting_created_event, "name": "JobPostingClosedEvent"})

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_kind == ErrorKind.NOT_FOUND
    assert store.writes == []


def test_posting_closed_missing_company_is_hard_failure(store) -> None:
    outcome = _project(store, {"name": "JobPostingClosedEvent", "_contractAddress": "0xB"})

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_kind == ErrorKind.VALIDATION


def test_posting_closed_keeps_existing_fields(store, posting_created_event) -> None:
    _project(store, posting_created_event)
    outcome = _project(
        store,
        {"name": "JobPostingClosedEvent", "_companyProfileAddress": "0xA", "_contractAddress": "0xB"},
    )

    assert outcome.status == OutcomeStatus.APPLIED
    posting = _only_document(store, JOB_POSTINGS)
    assert posting["isActive"] is False
    assert posting["jobTitle"] == "Engineer"
    assert posting["country"] == "US"


def test_application_created_starts_in_progress(store) -> None:
    outcome = _project(store, application_event("JobApplicationCreatedEvent"))

    assert outcome.created is True
    application = _only_document(store, JOB_APPLICATIONS)
    assert application["status"] == "InProgress"
    assert application["applicantAddress"] == "0xApplicant"
    assert application["applicantAddressLowerCase"] == "0xapplicant"
    assert application["jobPostingAddress"] == "0xB"


def test_offer_sent_then_hired_leaves_hired(store) -> None:
    _project(store, application_event("JobApplicationCreatedEvent"))
    _project(store, application_event("JobApplicationOfferSentEvent"))
    outcome = _project(store, application_event("JobApplicationHiredEvent"))

    assert outcome.status == OutcomeStatus.APPLIED
    assert _only_document(store, JOB_APPLICATIONS)["status"] == "Hired"


def test_permissive_policy_writes_hired_after_declined_offer(store) -> None:
    _project(store, application_event("JobApplicationCreatedEvent"))
    _project(store, application_event("JobApplicationOfferDeclinedEvent"))
    outcome = _project(store, application_event("JobApplicationHiredEvent"))

    assert outcome.ok
    assert _only_document(store, JOB_APPLICATIONS)["status"] == "Hired"


def test_strict_policy_rejects_illegal_transition(store) -> None:
    strict = {"transition_policy": TransitionPolicy.STRICT}
    _project(store, application_event("JobApplicationCreatedEvent"), **strict)
    _project(store, application_event("JobApplicationApplicationDeclinedEvent"), **strict)
    outcome = _project(store, application_event("JobApplicationOfferAcceptedEvent"), **strict)

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_kind == ErrorKind.CONFLICT
    assert _only_document(store, JOB_APPLICATIONS)["status"] == "ApplicationDeclined"


def test_strict_policy_redelivered_created_does_not_regress_status(store) -> None:
    strict = {"transition_policy": TransitionPolicy.STRICT}
    _project(store, application_event("JobApplicationCreatedEvent"), **strict)
    _project(store, application_event("JobApplicationOfferSentEvent"), **strict)
    outcome = _project(store, application_event("JobApplicationCreatedEvent"), **strict)

    assert outcome.ok
    assert _only_document(store, JOB_APPLICATIONS)["status"] == "OfferSent"


def test_status_change_for_unknown_application_fails(store) -> None:
    outcome = _project(store, application_event("JobApplicationOfferSentEvent"))

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_kind == ErrorKind.NOT_FOUND
    assert store.writes == []


def test_application_event_missing_job_posting_address_is_rejected(store) -> None:
    payload = application_event("JobApplicationCreatedEvent")
    payload.pop("_jobPostingAddress")

    outcome = _project(store, payload)

    assert outcome.error_kind == ErrorKind.VALIDATION
    assert store.writes == []


def test_optional_job_posting_address_keeps_projected_link(store) -> None:
    _project(store, application_event("JobApplicationCreatedEvent"))
    payload = application_event("JobApplicationOfferSentEvent")
    payload.pop("_jobPostingAddress")

    outcome = _project(store, payload, require_job_posting_address=False)

    assert outcome.ok
    application = _only_document(store, JOB_APPLICATIONS)
    assert application["status"] == "OfferSent"
    assert application["jobPostingAddress"] == "0xB"


def test_store_errors_become_store_failures(posting_created_event) -> None:
    class UnavailableStore(InMemoryStore):
        async def upsert(self, collection, key_field, key, data):
            raise RepositoryUnavailableError("database unavailable")

    outcome = _project(UnavailableStore(), posting_created_event)

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_kind == ErrorKind.STORE
    assert outcome.detail == "database unavailable"


def test_status_change_handler_reports_events_it_does_not_drive(store, posting_created_event) -> None:
    context = ProjectionContext(repository=store)
    outcome = asyncio.run(project_application_status_change(EventRecord.from_payload(posting_created_event), context))

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_kind == ErrorKind.UNEXPECTED
    assert outcome.collection == JOB_APPLICATIONS
    assert "JobPostingCreatedEvent" in outcome.detail
    assert store.writes == []
