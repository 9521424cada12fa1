"""Run one OMR job end to end.

Purpose:
- Stage an answer-sheet image and a format template under inputs/<checksum>/.
- Run the external OMR program under a virtual display, logging to
  outputs/<checksum>/output.log.
- On success print the results CSV between markers and delete both job dirs;
  on failure keep them and write error_<checksum>.log next to them.

The process exit code is the OMR program's exit code.
"""
from __future__ import annotations

import argparse
import sys
from typing import Sequence

from omr_runner.config import RunnerConfig, load_config
from omr_runner.jobs import diagnostics, history, store
from omr_runner.jobs.process import build_command, run_omr
from omr_runner.jobs.types import Job, JobStatus, RunOutcome

EXIT_TEMPLATE_MISSING = 1


def build_parser(cfg: RunnerConfig) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        allow_abbrev=False,
        description=(
            "Stage an answer sheet under inputs/<checksum> and run the OMR program on it. "
            "Unrecognized arguments are passed through to the OMR program."
        ),
    )
    p.add_argument("--python-path", required=True, type=str, help="Runtime used to launch the OMR program.")
    p.add_argument("--checksum", required=True, type=str, help="Job identifier; names the job directories.")
    p.add_argument("--store-file", type=str, default=None, help="File to copy into the input directory.")
    p.add_argument(
        "--format",
        type=str,
        default=cfg.formats.default_format,
        help=f"Exam format selecting the template (one of: {', '.join(sorted(cfg.formats.template_files))}).",
    )
    return p


def parse_args(
    argv: Sequence[str] | None, cfg: RunnerConfig
) -> tuple[argparse.Namespace, list[str]]:
    parser = build_parser(cfg)
    args, extra = parser.parse_known_args(argv)
    try:
        store.validate_checksum(args.checksum)
    except store.InvalidChecksumError as exc:
        parser.error(f"argument --checksum: {exc}")
    if extra[:1] == ["--"]:
        extra = extra[1:]
    return args, extra


def _record(cfg: RunnerConfig, event_type: str, status: JobStatus) -> None:
    try:
        history.record_status(cfg.paths.history_file(), event_type, status)
    except OSError as exc:
        print(f"[job] WARNING: could not write job history: {exc}", file=sys.stderr)


def finish_success(cfg: RunnerConfig, job: Job, status: JobStatus) -> None:
    print(f"[job] SUCCESS: OMR processing completed for {job.checksum}")
    results = diagnostics.emit_results(cfg, job)
    status.results_file = results.name if results is not None else None
    store.remove_job_dirs(job)


def finish_failure(cfg: RunnerConfig, job: Job, status: JobStatus, outcome: RunOutcome) -> None:
    print(f"[job] FAILED: OMR program exited with status {outcome.exit_code}", file=sys.stderr)
    diagnostics.print_listings(job)
    diagnostics.print_log(job)
    report = diagnostics.format_error_report(job, outcome)
    err_path = store.write_error_log(cfg.paths, job.checksum, report)
    status.error_log = str(err_path)
    print(f"[job] Job directories kept for inspection: {job.input_dir}, {job.output_dir}")
    print(f"[job] Error log written to {err_path}")


def main(argv: Sequence[str] | None = None, cfg: RunnerConfig | None = None) -> int:
    cfg = cfg or load_config()
    args, passthrough = parse_args(argv, cfg)

    job = store.make_job(
        cfg,
        args.checksum,
        template_format=args.format,
        store_file=args.store_file,
    )
    status = JobStatus(
        state="STAGED",
        checksum=job.checksum,
        template_format=job.template_format,
        created_at_utc=store.utc_now_iso(),
    )

    try:
        store.stage_job(cfg, job)
    except store.TemplateNotFoundError as exc:
        print(f"[job] FATAL: {exc}", file=sys.stderr)
        status.state = "FAILED"
        status.exit_code = EXIT_TEMPLATE_MISSING
        status.finished_at_utc = store.utc_now_iso()
        _record(cfg, "template_missing", status)
        return EXIT_TEMPLATE_MISSING

    command = build_command(args.python_path, cfg.paths.omr_main_script(), job, passthrough)
    status.command = command
    _record(cfg, "staged", status)

    diagnostics.print_job_info(job, command)

    status.state = "RUNNING"
    status.started_at_utc = store.utc_now_iso()
    outcome = run_omr(cfg, job, command)
    status.exit_code = outcome.exit_code
    status.finished_at_utc = outcome.finished_at_utc

    if outcome.succeeded:
        status.state = "SUCCEEDED"
        finish_success(cfg, job, status)
    else:
        status.state = "FAILED"
        finish_failure(cfg, job, status, outcome)

    _record(cfg, "finished", status)
    return outcome.exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
