from __future__ import annotations

import asyncio
import logging
import random

from opentelemetry import trace

from decentralhire.core.config import Settings, get_settings
from decentralhire.core.telemetry import configure_logging, record_poll_cycle, setup_telemetry, shutdown_telemetry
from decentralhire.projection.gate import IngestionGate
from decentralhire.projection.results import ProjectionOutcome
from decentralhire.services.repository import ProjectionRepository, get_repository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def poll_once(
    repository: ProjectionRepository,
    gate: IngestionGate,
    settings: Settings,
) -> list[ProjectionOutcome | None]:
    """Hand every deliverable pending event to the gate as its own invocation."""
    pending = await repository.list_pending_events(
        limit=settings.poll_batch_size,
        max_attempts=settings.max_delivery_attempts,
    )
    if not pending:
        return []
    return list(await asyncio.gather(*(gate.handle_pending(record) for record in pending)))


async def run_worker() -> None:
    settings = get_settings()
    configure_logging(settings)
    telemetry_runtime = setup_telemetry(settings)
    repository = get_repository()
    gate = IngestionGate.from_settings(repository, settings)

    backoff = settings.poll_interval_seconds

    try:
        while True:
            try:
                with tracer.start_as_current_span("worker.poll_cycle") as span:
                    outcomes = await poll_once(repository, gate, settings)
                    failures = record_poll_cycle(span, outcomes)
                if not outcomes:
                    await asyncio.sleep(settings.poll_interval_seconds)
                    continue

                logger.info("handled pending events: %s (failed: %s)", len(outcomes), failures)
                backoff = settings.poll_interval_seconds
            except Exception as exc:  # pragma: no cover - bootstrap robustness
                jitter = random.uniform(0.0, 0.5)
                sleep_for = min(backoff * (2.0 + jitter), settings.max_backoff_seconds)
                logger.exception("worker iteration failed: %s; retry in %.1fs", exc, sleep_for)
                await asyncio.sleep(sleep_for)
                backoff = sleep_for
    finally:
        await repository.close()
        shutdown_telemetry(telemetry_runtime)


if __name__ == "__main__":
    asyncio.run(run_worker())
