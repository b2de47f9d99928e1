from __future__ import annotations

import os
from typing import Any

import pytest

os.environ["DH_OTEL_ENABLED"] = "false"
os.environ.pop("DH_INGEST_API_KEY", None)

from decentralhire.core.config import get_settings  # noqa: E402
from decentralhire.services.repository import get_repository  # noqa: E402
from decentralhire.services.store import InMemoryStore  # noqa: E402


@pytest.fixture(autouse=True)
def clear_cached_factories() -> None:
    get_settings.cache_clear()
    get_repository.cache_clear()
    yield
    get_settings.cache_clear()
    get_repository.cache_clear()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def posting_created_event() -> dict[str, Any]:
    return {
        "name": "JobPostingCreatedEvent",
        "_companyProfileAddress": "0xA",
        "_contractAddress": "0xB",
        "_title": "Engineer",
        "_country": "US",
        "_city": "NY",
        "_isRemote": "true",
    }


def application_event(name: str, contract_address: str = "0xC0FFEE", **overrides: Any) -> dict[str, Any]:
    event: dict[str, Any] = {
        "name": name,
        "_applicant": "0xApplicant",
        "_contractAddress": contract_address,
        "_jobPostingAddress": "0xB",
    }
    event.update(overrides)
    return event
