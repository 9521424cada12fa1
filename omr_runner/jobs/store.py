from __future__ import annotations

import os
import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path

from omr_runner.config import PathsConfig, RunnerConfig
from omr_runner.jobs.types import Job


class TemplateNotFoundError(FileNotFoundError):
    """No template file exists for the requested exam format."""


class InvalidChecksumError(ValueError):
    """The checksum cannot name a single directory under the job roots."""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def sanitize_checksum(checksum: str) -> str:
    """Replace every non-alphanumeric character with ``_``."""
    return "".join(ch if ch.isascii() and ch.isalnum() else "_" for ch in str(checksum))


def validate_checksum(checksum: str) -> str:
    """Return ``checksum`` if it names exactly one child directory.

    Empty, whitespace-only, ``.`` and ``..`` values and anything containing a
    path separator are rejected; job directories get removed recursively.
    """
    value = str(checksum)
    if not value.strip():
        raise InvalidChecksumError("checksum must not be empty")
    if value in {".", ".."}:
        raise InvalidChecksumError(f"checksum must not be {value!r}")
    seps = {"/", os.sep} | ({os.altsep} if os.altsep else set())
    if any(s in value for s in seps) or "\0" in value:
        raise InvalidChecksumError(f"checksum must not contain a path separator: {value!r}")
    return value


def input_dir(paths: PathsConfig, checksum: str) -> Path:
    return paths.inputs_root() / validate_checksum(checksum)


def output_dir(paths: PathsConfig, checksum: str) -> Path:
    return paths.outputs_root() / validate_checksum(checksum)


def error_log_path(paths: PathsConfig, checksum: str) -> Path:
    return paths.root() / f"error_{sanitize_checksum(checksum)}.log"


def template_path(cfg: RunnerConfig, template_format: str) -> Path | None:
    """Return the template file for a format, or None for an unknown format."""
    name = cfg.formats.template_files.get(str(template_format))
    if name is None:
        return None
    return cfg.paths.templates_root() / name


def make_job(
    cfg: RunnerConfig,
    checksum: str,
    *,
    template_format: str | None = None,
    store_file: str | Path | None = None,
) -> Job:
    out = output_dir(cfg.paths, checksum)
    return Job(
        checksum=str(checksum),
        input_dir=input_dir(cfg.paths, checksum),
        output_dir=out,
        template_format=template_format or cfg.formats.default_format,
        log_path=out / cfg.results.log_filename,
        store_file=Path(store_file) if store_file else None,
    )


def reset_dir(path: Path) -> Path:
    """Remove ``path`` recursively if present and recreate it empty."""
    if path.exists() or path.is_symlink():
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    path.mkdir(parents=True, exist_ok=False)
    return path


def prepare_dirs(job: Job) -> None:
    reset_dir(job.input_dir)
    reset_dir(job.output_dir)
    print(f"[job] Created input dir:  {job.input_dir}")
    print(f"[job] Created output dir: {job.output_dir}")


def stage_store_file(job: Job) -> Path | None:
    """Copy the uploaded file into the input dir, keeping its base name.

    A missing file is reported and skipped; it is not an error.
    """
    if job.store_file is None:
        return None

    src = job.store_file
    if not src.is_file():
        print(f"[job] WARNING: store file not found, skipping: {src}", file=sys.stderr)
        return None

    dest = job.input_dir / src.name
    shutil.copy2(src, dest)
    print(f"[job] Staged {src} -> {dest}")
    return dest


def stage_template(cfg: RunnerConfig, job: Job) -> Path:
    src = template_path(cfg, job.template_format)
    if src is None:
        raise TemplateNotFoundError(
            f"No template configured for format {job.template_format!r} "
            f"(known: {', '.join(sorted(cfg.formats.template_files))})"
        )
    if not src.is_file():
        raise TemplateNotFoundError(f"Template file for format {job.template_format!r} not found: {src}")

    dest = job.input_dir / cfg.results.template_filename
    shutil.copy2(src, dest)
    print(f"[job] Using template {src.name} for format {job.template_format!r}")
    return dest


def stage_job(cfg: RunnerConfig, job: Job) -> None:
    """Reset both job directories and populate the input dir.

    Raises TemplateNotFoundError after the directories have been created
    when the format has no usable template.
    """
    prepare_dirs(job)
    stage_store_file(job)
    stage_template(cfg, job)


def remove_job_dirs(job: Job) -> None:
    for d in (job.input_dir, job.output_dir):
        if d.exists():
            shutil.rmtree(d)
            print(f"[cleanup] Removed {d}")


def list_dir(path: Path) -> list[str]:
    """Recursive listing relative to ``path`` (directories end with ``/``)."""
    if not path.is_dir():
        return []
    entries: list[str] = []
    for p in sorted(path.rglob("*")):
        rel = p.relative_to(path).as_posix()
        if p.is_dir():
            entries.append(rel + "/")
        else:
            entries.append(f"{rel} ({p.stat().st_size} bytes)")
    return entries


def read_text_safe(path: Path) -> str | None:
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8", errors="replace")


def write_error_log(paths: PathsConfig, checksum: str, content: str) -> Path:
    p = error_log_path(paths, checksum)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")
    return p
