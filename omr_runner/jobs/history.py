"""Append-only job history.

Design
- JSONL (newline-delimited JSON), one event per lifecycle transition.
- Best-effort atomicity: append a single line, flush, and fsync.
- Readers are tolerant: ignore malformed / partial lines.

The job directories are deleted on success, so this file is the only
record left of a job that went well.
"""

from __future__ import annotations

import json
import os
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from omr_runner.jobs.types import JobStatus


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def append_event(path: Path, event: dict[str, Any]) -> None:
    """Append a single event to a JSONL file.

    Best-effort crash safety:
    - write a single line
    - flush
    - fsync
    """

    if "ts_utc" not in event:
        event = dict(event)
        event["ts_utc"] = _utc_now_iso()

    path.parent.mkdir(parents=True, exist_ok=True)

    line = json.dumps(event, ensure_ascii=False)

    with path.open("a", encoding="utf-8", newline="\n") as f:
        f.write(line)
        f.write("\n")
        f.flush()
        try:
            os.fsync(f.fileno())
        except OSError:
            # Some filesystems do not support fsync.
            pass


def record_status(path: Path, event_type: str, status: JobStatus) -> None:
    append_event(path, {"type": event_type, **status.to_dict()})


def read_events(
    path: Path,
    *,
    max_events: int | None = None,
    checksum: str | None = None,
) -> list[dict[str, Any]]:
    """Read events from a JSONL file.

    Tolerant reader:
    - Skips blank lines.
    - Ignores lines that aren't valid JSON objects.
    - ``max_events`` keeps only the last N matching events.
    """

    if not path.exists():
        return []

    acc: deque[dict[str, Any]]
    if max_events is None:
        acc = deque()
    else:
        acc = deque(maxlen=int(max_events))

    with path.open("r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(obj, dict):
                continue
            if checksum is not None and obj.get("checksum") != checksum:
                continue
            acc.append(obj)

    return list(acc)


def last_status(path: Path, checksum: str) -> dict[str, Any] | None:
    events = read_events(path, max_events=1, checksum=checksum)
    return events[0] if events else None
