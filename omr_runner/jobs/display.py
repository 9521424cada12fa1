"""Virtual X display for the OMR program.

The OMR program pulls in GUI libraries that insist on a display even when
nothing is shown, so each run gets an Xvfb server for its lifetime:

    with virtual_display(cfg.display) as display:
        env["DISPLAY"] = display.name

Release is best-effort and never raises.
"""
from __future__ import annotations

import subprocess
import sys
import time
from contextlib import contextmanager
from typing import Iterator

from omr_runner.config import DisplayConfig


class VirtualDisplay:
    def __init__(self, cfg: DisplayConfig):
        self.cfg = cfg
        self.process: subprocess.Popen | None = None

    @property
    def name(self) -> str:
        return self.cfg.display

    def command(self) -> list[str]:
        return [self.cfg.xvfb_binary, self.cfg.display, "-screen", "0", self.cfg.screen]

    def start(self) -> None:
        if not self.cfg.enabled:
            print("[display] Virtual display disabled by config")
            return

        cmd = self.command()
        print(f"[display] Starting: {' '.join(cmd)}")
        try:
            self.process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            # The OMR program may still work (e.g. an existing display); let it try.
            print(f"[display] WARNING: could not start {cmd[0]}: {exc}", file=sys.stderr)
            self.process = None
            return

        if self.cfg.startup_wait_seconds > 0:
            time.sleep(self.cfg.startup_wait_seconds)

        rc = self.process.poll()
        if rc is not None:
            print(f"[display] WARNING: {cmd[0]} exited early with status {rc}", file=sys.stderr)

    def stop(self) -> None:
        proc = self.process
        self.process = None
        if proc is None:
            return
        try:
            if proc.poll() is None:
                proc.terminate()
                try:
                    proc.wait(timeout=self.cfg.stop_timeout_seconds)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    proc.wait(timeout=self.cfg.stop_timeout_seconds)
            print("[display] Stopped virtual display")
        except Exception as exc:  # noqa: BLE001
            print(f"[display] WARNING: failed to stop virtual display: {exc}", file=sys.stderr)


@contextmanager
def virtual_display(cfg: DisplayConfig) -> Iterator[VirtualDisplay]:
    display = VirtualDisplay(cfg)
    display.start()
    try:
        yield display
    finally:
        display.stop()
