"""Ingestion gate: the processed-flag guard around one event's projection.

An event record is projected only while its ``processed`` flag is falsy, and
the flag is flipped (together with the echoed event fields) only after the
projection succeeded. Failures leave the record untouched so the delivering
transport can hand it over again.
"""

from __future__ import annotations

import logging
from typing import Any

from decentralhire.core.config import Settings
from decentralhire.core.telemetry import projection_span, record_outcome, record_unclaimed
from decentralhire.projection.handlers import ProjectionContext
from decentralhire.projection.results import ErrorKind, OutcomeStatus, ProjectionOutcome, failed
from decentralhire.projection.router import route_event
from decentralhire.projection.status import TransitionPolicy
from decentralhire.schemas.events import EventChange, EventRecord
from decentralhire.services.repository import ProjectionRepository

logger = logging.getLogger(__name__)


class IngestionGate:
    def __init__(
        self,
        repository: ProjectionRepository,
        *,
        transition_policy: TransitionPolicy = TransitionPolicy.PERMISSIVE,
        require_job_posting_address: bool = True,
        claim_before_handling: bool = True,
        claim_lease_seconds: int = 120,
        mark_skipped_processed: bool = True,
    ) -> None:
        self.repository = repository
        self.context = ProjectionContext(
            repository=repository,
            transition_policy=transition_policy,
            require_job_posting_address=require_job_posting_address,
        )
        self.claim_before_handling = claim_before_handling
        self.claim_lease_seconds = max(1, claim_lease_seconds)
        self.mark_skipped_processed = mark_skipped_processed

    @classmethod
    def from_settings(cls, repository: ProjectionRepository, settings: Settings) -> "IngestionGate":
        return cls(
            repository,
            transition_policy=TransitionPolicy(settings.status_transition_policy),
            require_job_posting_address=settings.require_job_posting_address,
            claim_before_handling=settings.claim_before_handling,
            claim_lease_seconds=settings.claim_lease_seconds,
            mark_skipped_processed=settings.mark_skipped_processed,
        )

    async def handle_pending(self, record: dict[str, Any]) -> ProjectionOutcome | None:
        after = EventRecord.from_payload(record.get("payload", {}), processed=bool(record.get("processed")))
        return await self.handle_change(EventChange(event_id=record["id"], after=after))

    async def handle_change(self, change: EventChange) -> ProjectionOutcome | None:
        message = change.after
        if message is None or message.processed:
            logger.debug("event id=%s absent or already processed; nothing to do", change.event_id)
            return None

        with projection_span(change.event_id, message.name) as span:
            logger.info("retrieved event id=%s name=%s", change.event_id, message.name)

            if self.claim_before_handling:
                try:
                    claimed = await self.repository.claim_event(change.event_id, self.claim_lease_seconds)
                except Exception as exc:
                    logger.exception("failed to claim event id=%s", change.event_id)
                    outcome = failed(message.name, ErrorKind.STORE, str(exc) or type(exc).__name__)
                    record_outcome(span, outcome)
                    return outcome
                if not claimed:
                    logger.info("event id=%s is claimed elsewhere or already processed", change.event_id)
                    record_unclaimed(span)
                    return None

            try:
                outcome = await route_event(message, self.context)
            except Exception as exc:
                logger.exception("failed to process event id=%s", change.event_id)
                outcome = failed(message.name, ErrorKind.UNEXPECTED, str(exc) or type(exc).__name__)

            record_outcome(span, outcome)
            if not self._should_mark_processed(outcome):
                if not outcome.ok:
                    logger.error(
                        "event id=%s name=%s left unprocessed: %s (%s)",
                        change.event_id,
                        message.name,
                        outcome.error_kind.value if outcome.error_kind else None,
                        outcome.detail,
                    )
                await self._release(change.event_id)
                return outcome

            try:
                await self.repository.mark_processed(change.event_id, {**message.to_payload(), "processed": True})
            except Exception:
                logger.exception("failed to mark event id=%s processed", change.event_id)
                await self._release(change.event_id)
            return outcome

    def _should_mark_processed(self, outcome: ProjectionOutcome) -> bool:
        if outcome.status == OutcomeStatus.SKIPPED:
            return self.mark_skipped_processed
        return outcome.ok

    async def _release(self, event_id: str) -> None:
        if not self.claim_before_handling:
            return
        try:
            await self.repository.release_event(event_id)
        except Exception:
            logger.exception("failed to release claim on event id=%s", event_id)
