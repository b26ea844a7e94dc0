"""File helpers, identifier validation and external MIDI player invocation."""

from __future__ import annotations

import re
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from miditool.output import log, warn

DEFAULT_SOUNDFONT = "/usr/share/soundfonts/FluidR3_GM.sf2"


def player_commands(midi_path: Path, soundfont: str = DEFAULT_SOUNDFONT) -> list[list[str]]:
    """Candidate player command lines, most preferred first."""
    path = str(midi_path)
    return [
        ["fluidsynth", "-a", "alsa", "-m", "alsa_seq", "-i", "-g", "3.0", soundfont, path],
        ["timidity", "-A100", path],
        ["fluidsynth", "-i", path],
        ["pmidi", "-p", "14:0", path],
        ["aplaymidi", path],
    ]


def run_cmd(
    cmd: list[str],
    *,
    cwd: Optional[Path] = None,
    verbose: bool = False,
) -> subprocess.CompletedProcess[str]:
    """Run an external command, optionally streaming output."""
    if verbose:
        log(f"      $ {' '.join(cmd)}")
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd) if cwd else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
        assert proc.stdout is not None
        for line in proc.stdout:
            print("      " + line.rstrip("\n"), flush=True)
        rc = proc.wait()
        return subprocess.CompletedProcess(cmd, rc, "", "")
    return subprocess.run(
        cmd,
        cwd=str(cwd) if cwd else None,
        capture_output=True,
        text=True,
        check=False,
    )


def play_midi(midi_path: Path, *, verbose: bool = True) -> Optional[str]:
    """Try each known player until one exits cleanly.

    Returns the name of the player that worked, or None.
    """
    if not midi_path.exists():
        raise FileNotFoundError(f"MIDI file does not exist: {midi_path}")
    if midi_path.suffix.lower() not in {".mid", ".midi"}:
        warn(f"File does not have a .mid or .midi extension: {midi_path}")

    for cmd in player_commands(midi_path):
        if shutil.which(cmd[0]) is None:
            continue
        log(f"Trying to play with {cmd[0]}...")
        proc = run_cmd(cmd, verbose=verbose)
        if proc.returncode == 0:
            log(f"[OK] Played {midi_path.name} with {cmd[0]}")
            return cmd[0]
        warn(f"{cmd[0]} exited with code {proc.returncode}")
    return None


def read_text(path: Path) -> str:
    """Read a text file as UTF-8."""
    return path.read_text(encoding="utf-8")


def write_text(path: Path, text: str) -> None:
    """Write a text file as UTF-8, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def append_text(path: Path, text: str) -> None:
    """Append to a UTF-8 text file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(text)


def validate_identifier(name: str) -> str:
    """Validate a name used as a path component (no separators, no leading dot)."""
    if name.startswith("."):
        raise ValueError("Identifier must not start with '.'")
    if "/" in name or "\\" in name:
        raise ValueError("Identifier must not contain path separators.")
    if not re.fullmatch(r"[A-Za-z0-9][A-Za-z0-9._-]*", name):
        raise ValueError("Identifier contains unsupported characters.")
    return name
