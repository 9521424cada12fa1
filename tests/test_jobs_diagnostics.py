from __future__ import annotations

import os
from pathlib import Path

from omr_runner.jobs import diagnostics, store
from omr_runner.jobs.types import RunOutcome


def _results_dir(job) -> Path:
    d = job.output_dir / "Results"
    d.mkdir(parents=True, exist_ok=True)
    return d


def test_find_results_file_prefers_most_recent(cfg) -> None:
    job = store.make_job(cfg, "abc123")
    store.prepare_dirs(job)
    d = _results_dir(job)
    old = d / "Results_1.csv"
    new = d / "Results_2.csv"
    old.write_text("a\n1\n")
    new.write_text("a\n2\n")
    os.utime(old, (1_000_000, 1_000_000))
    os.utime(new, (2_000_000, 2_000_000))
    (d / "Errors_1.csv").write_text("ignored\n")

    assert diagnostics.find_results_file(cfg, job) == new


def test_emit_results_prints_between_markers(cfg, capsys) -> None:
    job = store.make_job(cfg, "abc123")
    store.prepare_dirs(job)
    (_results_dir(job) / "Results_1.csv").write_text("file_id,score\nsheet.png,42\n")

    path = diagnostics.emit_results(cfg, job)

    out = capsys.readouterr().out
    assert path is not None and path.name == "Results_1.csv"
    block = out.split(cfg.results.start_marker + "\n", 1)[1].split(cfg.results.end_marker, 1)[0]
    assert block == "file_id,score\nsheet.png,42\n"
    assert "1 row(s) x 2 column(s)" in out


def test_emit_results_reports_missing_directory(cfg, capsys) -> None:
    job = store.make_job(cfg, "abc123")
    store.prepare_dirs(job)

    assert diagnostics.emit_results(cfg, job) is None

    out = capsys.readouterr().out
    assert "Results directory not found" in out
    assert cfg.results.start_marker not in out


def test_emit_results_reports_missing_file(cfg, capsys) -> None:
    job = store.make_job(cfg, "abc123")
    store.prepare_dirs(job)
    _results_dir(job)

    assert diagnostics.emit_results(cfg, job) is None
    assert "No results file matching" in capsys.readouterr().out


def test_summarize_results_tolerates_empty_file(tmp_path: Path, capsys) -> None:
    p = tmp_path / "Results_1.csv"
    p.write_text("")

    assert diagnostics.summarize_results(p) is None
    assert "could not parse" in capsys.readouterr().err


def test_print_job_info_lists_dirs(cfg, sheet: Path, capsys) -> None:
    job = store.make_job(cfg, "abc123", store_file=sheet)
    store.stage_job(cfg, job)

    diagnostics.print_job_info(job, ["python", "main.py"])

    out = capsys.readouterr().out
    assert "abc123" in out
    assert "sheet.png" in out
    assert "template.json" in out
    assert "python main.py" in out


def test_format_error_report_contains_everything(cfg) -> None:
    job = store.make_job(cfg, "bad001")
    store.stage_job(cfg, job)
    job.log_path.write_text("Traceback: something broke\n")
    outcome = RunOutcome(
        exit_code=2,
        command=["python", "main.py", "--inputDir", str(job.input_dir)],
        started_at_utc="2024-01-01T00:00:00+00:00",
        finished_at_utc="2024-01-01T00:00:05+00:00",
    )

    report = diagnostics.format_error_report(job, outcome, env={"DISPLAY": ":99", "HOME": "/home/omr"})

    assert "Exit code: 2" in report
    assert "Command: python main.py --inputDir" in report
    assert "DISPLAY=:99" in report
    assert "HOME=/home/omr" in report
    assert "template.json" in report
    assert "Traceback: something broke" in report
    assert report.startswith("Timestamp (UTC): ")
