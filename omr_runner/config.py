# omr_runner/config.py

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

# --- Base paths ---
# Project root can be overridden if needed (e.g. for tests or deployment)
BASE_DIR = os.path.abspath(os.getenv("OMR_RUNNER_BASE_DIR", os.path.join(os.path.dirname(__file__), "..")))


# ---------------------------
# Structured configuration
# ---------------------------

@dataclass(frozen=True)
class PathsConfig:
    """Filesystem layout for staged jobs.

    Values can be overridden via environment variables:
    - OMR_RUNNER_BASE_DIR
    - OMR_RUNNER_TEMPLATES_DIR
    - OMR_RUNNER_MAIN_SCRIPT
    """

    base_dir: str = field(default_factory=lambda: os.getenv("OMR_RUNNER_BASE_DIR", BASE_DIR))
    templates_dir: str | None = field(default_factory=lambda: os.getenv("OMR_RUNNER_TEMPLATES_DIR"))
    main_script: str | None = field(default_factory=lambda: os.getenv("OMR_RUNNER_MAIN_SCRIPT"))

    def root(self) -> Path:
        return Path(self.base_dir)

    def inputs_root(self) -> Path:
        return self.root() / "inputs"

    def outputs_root(self) -> Path:
        return self.root() / "outputs"

    def templates_root(self) -> Path:
        if self.templates_dir:
            return Path(self.templates_dir)
        return self.root() / "templates"

    def omr_main_script(self) -> Path:
        if self.main_script:
            return Path(self.main_script)
        return self.root() / "OMRChecker" / "main.py"

    def history_file(self) -> Path:
        return self.root() / "logs" / "job_history.jsonl"


@dataclass(frozen=True)
class DisplayConfig:
    """Virtual framebuffer used by the OMR program's rendering dependencies."""

    enabled: bool = field(
        default_factory=lambda: os.getenv("OMR_RUNNER_XVFB_ENABLED", "1").strip().lower()
        not in {"0", "false", "no", "off"}
    )
    xvfb_binary: str = field(default_factory=lambda: os.getenv("OMR_RUNNER_XVFB_BINARY", "Xvfb"))
    display: str = field(default_factory=lambda: os.getenv("OMR_RUNNER_DISPLAY", ":99"))
    screen: str = field(default_factory=lambda: os.getenv("OMR_RUNNER_XVFB_SCREEN", "1280x1024x24"))
    startup_wait_seconds: float = field(
        default_factory=lambda: float(os.getenv("OMR_RUNNER_XVFB_STARTUP_WAIT", "1.0"))
    )
    stop_timeout_seconds: float = 5.0


@dataclass(frozen=True)
class ResultsConfig:
    """Names of the files exchanged with the OMR program."""

    template_filename: str = "template.json"
    log_filename: str = "output.log"
    results_subdir: str = "Results"
    results_glob: str = "Results_*.csv"
    start_marker: str = "===RESULTS_CSV_START==="
    end_marker: str = "===RESULTS_CSV_END==="


@dataclass(frozen=True)
class FormatsConfig:
    """Exam format -> template file (relative to the templates directory)."""

    default_format: str = "jee"
    template_files: Dict[str, str] = field(
        default_factory=lambda: {
            "jee": "jee_template.json",
            "neet": "neet_template.json",
            "olympiad": "olympiad_template.json",
        }
    )


@dataclass(frozen=True)
class RunnerConfig:
    paths: PathsConfig = field(default_factory=PathsConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    results: ResultsConfig = field(default_factory=ResultsConfig)
    formats: FormatsConfig = field(default_factory=FormatsConfig)


def load_config() -> RunnerConfig:
    """Build a fresh config, re-reading the environment."""
    return RunnerConfig()

