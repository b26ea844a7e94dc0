"""Console progress output: plain lines, warnings, banners and step timers."""

from __future__ import annotations

import time

BANNER_WIDTH = 72


def log(msg: str) -> None:
    """Print a message with immediate flush."""
    print(msg, flush=True)


def warn(msg: str) -> None:
    log(f"[WARN] {msg}")


def banner(msg: str, *, width: int = BANNER_WIDTH) -> None:
    """Print a message between two rules."""
    rule = "=" * width
    log(f"\n{rule}\n{msg}\n{rule}")


class StepTimer:
    """Logs start, end and elapsed time of a labeled step.

    Usable around awaited calls; elapsed holds the duration once the block
    exits.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self.t0 = 0.0
        self.elapsed = 0.0

    def __enter__(self) -> StepTimer:
        self.t0 = time.perf_counter()
        log(f"[..] {self.label}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.elapsed = time.perf_counter() - self.t0
        if exc is None:
            log(f"[OK] {self.label} ({self.elapsed:.2f}s)")
        else:
            log(f"[!!] {self.label} failed after {self.elapsed:.2f}s: {exc}")
