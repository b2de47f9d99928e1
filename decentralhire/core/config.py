from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "decentralhire-projector"
    environment: str = "dev"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    ingest_api_key: str | None = None
    status_transition_policy: Literal["permissive", "strict"] = "permissive"
    require_job_posting_address: bool = True
    claim_before_handling: bool = True
    claim_lease_seconds: int = 120
    mark_skipped_processed: bool = True
    poll_interval_seconds: float = 2.0
    max_backoff_seconds: float = 15.0
    poll_batch_size: int = 25
    max_delivery_attempts: int = 3
    otel_enabled: bool = True
    otel_service_name: str = "decentralhire-projector"
    otel_exporter_otlp_endpoint: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DH_OTEL_EXPORTER_OTLP_ENDPOINT", "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT"),
    )
    otel_exporter_otlp_headers: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DH_OTEL_EXPORTER_OTLP_HEADERS", "OTEL_EXPORTER_OTLP_HEADERS"),
    )
    otel_trace_sample_ratio: float = 1.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="DH_", extra="ignore", populate_by_name=True)


@lru_cache
def get_settings() -> Settings:
    return Settings()
