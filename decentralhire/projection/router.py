from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from decentralhire.projection.handlers import (
    ProjectionContext,
    project_application_created,
    project_application_status_change,
    project_posting_closed,
    project_posting_created,
)
from decentralhire.projection.results import OutcomeStatus, ProjectionOutcome
from decentralhire.schemas.events import EventName, EventRecord

logger = logging.getLogger(__name__)

EventHandler = Callable[[EventRecord, ProjectionContext], Awaitable[ProjectionOutcome]]

EVENT_HANDLERS: dict[EventName, EventHandler] = {
    EventName.JOB_POSTING_CREATED: project_posting_created,
    EventName.JOB_POSTING_CLOSED: project_posting_closed,
    EventName.JOB_APPLICATION_CREATED: project_application_created,
    EventName.JOB_APPLICATION_OFFER_SENT: project_application_status_change,
    EventName.JOB_APPLICATION_OFFER_ACCEPTED: project_application_status_change,
    EventName.JOB_APPLICATION_OFFER_DECLINED: project_application_status_change,
    EventName.JOB_APPLICATION_APPLICATION_DECLINED: project_application_status_change,
    EventName.JOB_APPLICATION_HIRED: project_application_status_change,
}


async def route_event(event: EventRecord, context: ProjectionContext) -> ProjectionOutcome:
    event_name = EventName.parse(event.name)
    if event_name is None:
        logger.debug("ignoring event with unknown name=%r", event.name)
        return ProjectionOutcome(event_name=event.name, status=OutcomeStatus.IGNORED)

    return await EVENT_HANDLERS[event_name](event, context)
