from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal

JobState = Literal["STAGED", "RUNNING", "SUCCEEDED", "FAILED"]


@dataclass(frozen=True)
class Job:
    """Everything a single run needs to know about its directories.

    Passed explicitly through staging, execution and cleanup so that no
    step has to re-derive paths from the checksum on its own.
    """

    checksum: str
    input_dir: Path
    output_dir: Path
    template_format: str
    log_path: Path
    store_file: Path | None = None


@dataclass
class JobStatus:
    state: JobState
    checksum: str
    template_format: str
    created_at_utc: str
    started_at_utc: str | None = None
    finished_at_utc: str | None = None
    exit_code: int | None = None
    command: list[str] = field(default_factory=list)
    results_file: str | None = None
    error_log: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RunOutcome:
    exit_code: int
    command: list[str]
    started_at_utc: str
    finished_at_utc: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0
