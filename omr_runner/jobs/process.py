from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Sequence

from omr_runner.config import RunnerConfig
from omr_runner.jobs.display import virtual_display
from omr_runner.jobs.store import utc_now_iso
from omr_runner.jobs.types import Job, RunOutcome

# Shell conventions for a command that could not be launched.
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


def build_command(
    python_path: str | Path,
    main_script: str | Path,
    job: Job,
    passthrough: Sequence[str] = (),
) -> list[str]:
    return [
        str(python_path),
        str(main_script),
        "--inputDir",
        str(job.input_dir),
        "--outputDir",
        str(job.output_dir),
        *[str(a) for a in passthrough],
    ]


def build_env(display_name: str | None) -> dict[str, str]:
    """Copy of the current environment with DISPLAY pointed at the virtual display."""
    env = os.environ.copy()
    if display_name:
        env["DISPLAY"] = display_name
    return env


def normalize_returncode(returncode: int) -> int:
    # Popen reports death-by-signal as -N; shells report 128+N.
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


def run_omr(
    cfg: RunnerConfig,
    job: Job,
    command: list[str],
) -> RunOutcome:
    """Run the OMR program for ``job`` and block until it exits.

    stdout and stderr are combined into ``job.log_path``. There is no
    timeout and no retry.
    """
    job.log_path.parent.mkdir(parents=True, exist_ok=True)
    started = utc_now_iso()

    with virtual_display(cfg.display) as display:
        env = build_env(display.name if cfg.display.enabled else None)
        print(f"[job] Running: {' '.join(command)}")
        with job.log_path.open("wb") as log_f:
            try:
                proc = subprocess.run(
                    command,
                    stdout=log_f,
                    stderr=subprocess.STDOUT,
                    env=env,
                    check=False,
                )
                exit_code = normalize_returncode(proc.returncode)
            except FileNotFoundError as exc:
                log_f.write(f"{exc}\n".encode("utf-8", errors="replace"))
                print(f"[job] ERROR: runtime not found: {exc}", file=sys.stderr)
                exit_code = EXIT_NOT_FOUND
            except PermissionError as exc:
                log_f.write(f"{exc}\n".encode("utf-8", errors="replace"))
                print(f"[job] ERROR: runtime not executable: {exc}", file=sys.stderr)
                exit_code = EXIT_NOT_EXECUTABLE

    print(f"[job] OMR program exited with status {exit_code}")
    return RunOutcome(
        exit_code=exit_code,
        command=list(command),
        started_at_utc=started,
        finished_at_utc=utc_now_iso(),
    )
