#!/usr/bin/env python3
"""Re-deliver chain event records from a JSON-lines file to the ingest endpoint."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import httpx


def read_events(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    for line_number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        try:
            payload = json.loads(stripped)
        except json.JSONDecodeError as exc:
            raise ValueError(f"line {line_number}: invalid JSON ({exc.msg})") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"line {line_number}: expected a JSON object")
        yield payload


def replay(
    events: Iterable[dict[str, Any]],
    *,
    client: httpx.Client,
    api_key: str | None = None,
) -> dict[str, int]:
    headers = {"X-API-Key": api_key} if api_key else {}
    summary = {"sent": 0, "processed": 0, "unprocessed": 0}
    for event in events:
        response = client.post("/events", json=event, headers=headers)
        response.raise_for_status()
        summary["sent"] += 1
        if response.json().get("processed"):
            summary["processed"] += 1
        else:
            summary["unprocessed"] += 1
    return summary


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay chain event records into the projection service.")
    parser.add_argument("path", type=Path, help="JSON-lines file with one event record per line")
    parser.add_argument("--base-url", default="http://localhost:8000", help="Projection service base URL")
    parser.add_argument("--api-key", default=None, help="Value for the X-API-Key header")
    parser.add_argument("--timeout", type=float, default=10.0, help="Per-request timeout in seconds")
    args = parser.parse_args()

    with args.path.open("r", encoding="utf-8") as handle:
        events = list(read_events(handle))

    with httpx.Client(base_url=args.base_url, timeout=args.timeout) as client:
        summary = replay(events, client=client, api_key=args.api_key)

    json.dump(summary, sys.stdout)
    sys.stdout.write("\n")
    if summary["unprocessed"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
