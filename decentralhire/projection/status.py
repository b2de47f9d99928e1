from __future__ import annotations

from enum import Enum

from decentralhire.schemas.applications import JobApplicationStatus
from decentralhire.schemas.events import EventName


class TransitionPolicy(str, Enum):
    PERMISSIVE = "permissive"
    STRICT = "strict"


STATUS_BY_EVENT: dict[EventName, JobApplicationStatus] = {
    EventName.JOB_APPLICATION_CREATED: JobApplicationStatus.IN_PROGRESS,
    EventName.JOB_APPLICATION_OFFER_SENT: JobApplicationStatus.OFFER_SENT,
    EventName.JOB_APPLICATION_OFFER_ACCEPTED: JobApplicationStatus.OFFER_ACCEPTED,
    EventName.JOB_APPLICATION_OFFER_DECLINED: JobApplicationStatus.OFFER_DECLINED,
    EventName.JOB_APPLICATION_APPLICATION_DECLINED: JobApplicationStatus.APPLICATION_DECLINED,
    EventName.JOB_APPLICATION_HIRED: JobApplicationStatus.HIRED,
}

ALLOWED_TRANSITIONS: dict[JobApplicationStatus, frozenset[JobApplicationStatus]] = {
    JobApplicationStatus.IN_PROGRESS: frozenset(
        {
            JobApplicationStatus.OFFER_SENT,
            JobApplicationStatus.APPLICATION_DECLINED,
            JobApplicationStatus.HIRED,
        }
    ),
    JobApplicationStatus.OFFER_SENT: frozenset(
        {
            JobApplicationStatus.OFFER_ACCEPTED,
            JobApplicationStatus.OFFER_DECLINED,
            JobApplicationStatus.HIRED,
        }
    ),
    JobApplicationStatus.OFFER_ACCEPTED: frozenset({JobApplicationStatus.HIRED}),
    JobApplicationStatus.OFFER_DECLINED: frozenset(),
    JobApplicationStatus.APPLICATION_DECLINED: frozenset(),
    JobApplicationStatus.HIRED: frozenset(),
}


def target_status(event_name: EventName) -> JobApplicationStatus | None:
    return STATUS_BY_EVENT.get(event_name)


def parse_status(raw: object) -> JobApplicationStatus | None:
    return JobApplicationStatus.parse(raw)


def is_transition_allowed(
    current: JobApplicationStatus | None,
    target: JobApplicationStatus,
    policy: TransitionPolicy,
) -> bool:
    if policy == TransitionPolicy.PERMISSIVE:
        return True
    # Documents written by older revisions may carry no recognizable status.
    if current is None or current == target:
        return True
    return target in ALLOWED_TRANSITIONS[current]
