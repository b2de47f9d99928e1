"""Tracing and log correlation for the projector.

Every projection runs inside one ``projection.handle_event`` span. While it is
open, log records emitted anywhere in the process carry the event id next to
the trace id, so a single event can be followed through handler, store and
gate logs.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.trace import Span, Status, StatusCode

from decentralhire.core.config import Settings
from decentralhire.projection.results import OutcomeStatus, ProjectionOutcome

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s event_id=%(event_id)s trace_id=%(trace_id)s %(message)s"
NO_EVENT = "-"

_current_event_id: ContextVar[str] = ContextVar("decentralhire_event_id", default=NO_EVENT)
_base_record_factory = logging.getLogRecordFactory()
_correlation_installed = False

tracer = trace.get_tracer("decentralhire.projection")


@dataclass(slots=True)
class TelemetryRuntime:
    enabled: bool
    provider: TracerProvider | None


def configure_logging(settings: Settings) -> None:
    """Apply ``DH_LOG_LEVEL`` and stamp records with the event being projected."""
    _install_log_correlation()
    level = settings.log_level.upper()
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("decentralhire").setLevel(level)


def setup_telemetry(settings: Settings) -> TelemetryRuntime:
    if not settings.otel_enabled:
        return TelemetryRuntime(enabled=False, provider=None)

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                DEPLOYMENT_ENVIRONMENT: settings.environment,
            }
        ),
        sampler=TraceIdRatioBased(settings.otel_trace_sample_ratio),
    )
    if settings.otel_exporter_otlp_endpoint:
        exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            headers=parse_headers(settings.otel_exporter_otlp_headers) or None,
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
    else:
        logging.getLogger(__name__).info("no OTLP endpoint configured; projection spans stay in-process")
    trace.set_tracer_provider(provider)
    return TelemetryRuntime(enabled=True, provider=provider)


def shutdown_telemetry(runtime: TelemetryRuntime) -> None:
    if runtime.provider is None:
        return
    runtime.provider.force_flush()
    runtime.provider.shutdown()


def parse_headers(raw: str | None) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for item in (raw or "").split(","):
        key, separator, value = item.partition("=")
        if separator and key.strip():
            parsed[key.strip()] = value.strip()
    return parsed


def current_event_id() -> str:
    return _current_event_id.get()


@contextmanager
def projection_span(event_id: str, event_name: str) -> Iterator[Span]:
    """Open the span for one event and bind its id to log records."""
    token = _current_event_id.set(event_id)
    try:
        with tracer.start_as_current_span("projection.handle_event") as span:
            span.set_attribute("event.id", event_id)
            span.set_attribute("event.name", event_name)
            yield span
    finally:
        _current_event_id.reset(token)


def record_unclaimed(span: Span) -> None:
    span.set_attribute("event.claimed", False)


def record_outcome(span: Span, outcome: ProjectionOutcome) -> None:
    span.set_attribute("event.outcome", outcome.status.value)
    if outcome.collection:
        span.set_attribute("event.collection", outcome.collection)
    if outcome.status == OutcomeStatus.APPLIED:
        span.set_attribute("event.created", outcome.created)
    if outcome.error_kind is not None:
        span.set_attribute("event.error_kind", outcome.error_kind.value)
    if not outcome.ok:
        span.set_status(Status(StatusCode.ERROR, outcome.detail or outcome.status.value))


def record_poll_cycle(span: Span, outcomes: Sequence[ProjectionOutcome | None]) -> int:
    """Annotate a poll cycle span and return how many events failed."""
    failures = sum(1 for outcome in outcomes if outcome is not None and not outcome.ok)
    span.set_attribute("worker.batch_size", len(outcomes))
    span.set_attribute("worker.failed", failures)
    return failures


def _install_log_correlation() -> None:
    global _correlation_installed
    if _correlation_installed:
        return

    def record_factory(*args: object, **kwargs: object) -> logging.LogRecord:
        record = _base_record_factory(*args, **kwargs)
        context = trace.get_current_span().get_span_context()
        record.event_id = _current_event_id.get()
        record.trace_id = format(context.trace_id, "032x") if context.is_valid else "0" * 32
        return record

    logging.setLogRecordFactory(record_factory)
    _correlation_installed = True
