"""Pytest configuration and shared fixtures.

Makes the project root importable and provides an isolated job root with
templates and a stand-in OMR program written as a small Python script.
"""

from __future__ import annotations

import os
import sys
import textwrap
from pathlib import Path

import pytest

# Project root = parent directory of this tests/ folder
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from omr_runner.config import DisplayConfig, PathsConfig, RunnerConfig  # noqa: E402

FAKE_OMR_SCRIPT = textwrap.dedent(
    """
    import argparse
    import json
    import os
    import sys
    from pathlib import Path

    p = argparse.ArgumentParser()
    p.add_argument("--inputDir", required=True)
    p.add_argument("--outputDir", required=True)
    p.add_argument("--exit-code", type=int, default=0)
    p.add_argument("--write-results", action="store_true")
    p.add_argument("--record", default=None)
    a = p.parse_args()

    print("processing " + a.inputDir)
    print("warning from omr", file=sys.stderr)

    if a.record:
        Path(a.record).write_text(
            json.dumps(
                {
                    "argv": sys.argv[1:],
                    "display": os.environ.get("DISPLAY"),
                    "inputs": sorted(os.listdir(a.inputDir)),
                }
            )
        )

    if a.write_results:
        results = Path(a.outputDir) / "Results"
        results.mkdir(parents=True, exist_ok=True)
        (results / "Results_1.csv").write_text("file_id,score\\nsheet.png,42\\n")

    sys.exit(a.exit_code)
    """
)


@pytest.fixture
def job_root(tmp_path: Path) -> Path:
    root = tmp_path / "root"
    templates = root / "templates"
    templates.mkdir(parents=True)
    (templates / "jee_template.json").write_text('{"format": "jee"}', encoding="utf-8")
    (templates / "neet_template.json").write_text('{"format": "neet"}', encoding="utf-8")
    # olympiad_template.json intentionally absent
    return root


@pytest.fixture
def fake_omr(tmp_path: Path) -> Path:
    script = tmp_path / "fake_omr" / "main.py"
    script.parent.mkdir(parents=True)
    script.write_text(FAKE_OMR_SCRIPT, encoding="utf-8")
    return script


@pytest.fixture
def cfg(job_root: Path, fake_omr: Path) -> RunnerConfig:
    return RunnerConfig(
        paths=PathsConfig(base_dir=str(job_root), templates_dir=None, main_script=str(fake_omr)),
        display=DisplayConfig(enabled=False, startup_wait_seconds=0.0),
    )


@pytest.fixture
def sheet(tmp_path: Path) -> Path:
    p = tmp_path / "uploads" / "sheet.png"
    p.parent.mkdir(parents=True)
    p.write_bytes(b"\x89PNG fake image")
    return p
