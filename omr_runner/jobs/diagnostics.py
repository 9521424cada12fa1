"""Console diagnostics, results extraction and error-report rendering.

The results block is printed between two literal marker lines so a calling
process can cut it out of stdout without parsing anything else.
"""
from __future__ import annotations

import getpass
import os
import sys
from pathlib import Path
from typing import Any, Mapping

import pandas as pd

from omr_runner.config import RunnerConfig
from omr_runner.jobs import store
from omr_runner.jobs.types import Job, RunOutcome


def invoking_user() -> str:
    try:
        name = getpass.getuser()
    except (KeyError, OSError):
        name = "unknown"
    uid = os.getuid() if hasattr(os, "getuid") else None
    return f"{name} (uid={uid})" if uid is not None else name


def _print_listing(label: str, path: Path) -> None:
    if not path.is_dir():
        print(f"[job] {label}: {path} (missing)")
        return
    entries = store.list_dir(path)
    print(f"[job] {label}: {path} ({len(entries)} entries)")
    for e in entries:
        print(f"    {e}")


def print_job_info(job: Job, command: list[str]) -> None:
    print(f"[job] Checksum:      {job.checksum}")
    print(f"[job] Format:        {job.template_format}")
    print(f"[job] User:          {invoking_user()}")
    print(f"[job] Working dir:   {os.getcwd()}")
    print(f"[job] Log file:      {job.log_path}")
    print(f"[job] Command:       {' '.join(command)}")
    print_listings(job)


def print_listings(job: Job) -> None:
    _print_listing("Input dir", job.input_dir)
    _print_listing("Output dir", job.output_dir)


def print_log(job: Job) -> None:
    text = store.read_text_safe(job.log_path)
    if text is None:
        print(f"[job] Log file missing: {job.log_path}")
        return
    print(f"[job] ---- {job.log_path.name} ----")
    print(text.rstrip("\n"))
    print(f"[job] ---- end of {job.log_path.name} ----")


def find_results_file(cfg: RunnerConfig, job: Job) -> Path | None:
    """Most recently modified ``Results/Results_*.csv`` in the output dir."""
    results_dir = job.output_dir / cfg.results.results_subdir
    if not results_dir.is_dir():
        return None
    matches = [p for p in results_dir.glob(cfg.results.results_glob) if p.is_file()]
    if not matches:
        return None
    return max(matches, key=lambda p: (p.stat().st_mtime, p.name))


def summarize_results(path: Path) -> dict[str, Any] | None:
    """Row/column counts of a results CSV, or None if it cannot be parsed."""
    try:
        df = pd.read_csv(path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        print(f"[results] WARNING: could not parse {path.name}: {exc}", file=sys.stderr)
        return None
    return {"rows": int(len(df)), "columns": [str(c) for c in df.columns]}


def emit_results(cfg: RunnerConfig, job: Job) -> Path | None:
    """Print the results CSV between the start/end markers.

    Absence of the Results directory or file is reported, not raised.
    """
    results_dir = job.output_dir / cfg.results.results_subdir
    if not results_dir.is_dir():
        print(f"[results] Results directory not found: {results_dir}")
        return None

    path = find_results_file(cfg, job)
    if path is None:
        print(f"[results] No results file matching {cfg.results.results_glob} found in {results_dir}")
        return None

    print(f"[results] Found results file: {path}")
    content = path.read_text(encoding="utf-8", errors="replace")
    print(cfg.results.start_marker)
    print(content, end="" if content.endswith("\n") else "\n")
    print(cfg.results.end_marker)

    summary = summarize_results(path)
    if summary is not None:
        print(f"[results] {summary['rows']} row(s) x {len(summary['columns'])} column(s)")
    return path


def _section(title: str) -> str:
    return f"\n===== {title} =====\n"


def format_error_report(
    job: Job,
    outcome: RunOutcome,
    *,
    env: Mapping[str, str] | None = None,
) -> str:
    """Render the persistent error log for a failed run."""
    env = os.environ if env is None else env
    parts: list[str] = [
        f"Timestamp (UTC): {store.utc_now_iso()}",
        f"Checksum: {job.checksum}",
        f"Format: {job.template_format}",
        f"Command: {' '.join(outcome.command)}",
        f"Exit code: {outcome.exit_code}",
        f"Started (UTC): {outcome.started_at_utc}",
        f"Finished (UTC): {outcome.finished_at_utc}",
        f"User: {invoking_user()}",
    ]

    parts.append(_section("Environment"))
    parts.extend(f"{k}={v}" for k, v in sorted(env.items()))

    for title, d in (("Input directory", job.input_dir), ("Output directory", job.output_dir)):
        parts.append(_section(f"{title}: {d}"))
        entries = store.list_dir(d)
        parts.extend(entries if entries else ["(empty or missing)"])

    parts.append(_section(f"Log: {job.log_path}"))
    log_text = store.read_text_safe(job.log_path)
    parts.append(log_text if log_text is not None else "(log file missing)")

    return "\n".join(parts).rstrip("\n") + "\n"
