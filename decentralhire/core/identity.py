import hashlib
import json
from typing import Any

IDENTITY_IGNORED_KEYS = {"id", "processed"}


def as_text(value: Any) -> str:
    """Coerce an event field to a stripped string the way it is stored."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def lower_address(address: str | None) -> str:
    return (address or "").lower()


def event_fingerprint(payload: dict[str, Any]) -> str:
    """Stable id for an event payload that arrives without one."""
    identity = {key: value for key, value in payload.items() if key not in IDENTITY_IGNORED_KEYS}
    encoded = json.dumps(identity, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()
