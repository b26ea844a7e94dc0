"""Conversion between hex-token text and raw MIDI bytes."""

from __future__ import annotations

import re
import string
from pathlib import Path

from miditool.errors import InvalidMidiError, MalformedHexError
from miditool.output import log

MIDI_HEADER_MAGIC = b"MThd"
TRACK_HEADER_MAGIC = b"MTrk"

_WHITESPACE_RE = re.compile(r"\s+")
_HEX_DIGITS = frozenset(string.hexdigits)

# One C4 quarter note on a single track, 480 ticks per beat.
TEST_MIDI_HEX = """
4D 54 68 64 00 00 00 06 00 01 00 01 01 E0
4D 54 72 6B 00 00 00 0D
00 90 3C 64
83 60 80 3C 00
00 FF 2F 00
"""


def hex_to_bytes(hex_text: str) -> bytes:
    """Decode space/newline separated hex pairs into bytes.

    Raises MalformedHexError when the cleaned text has odd length or a pair
    is not hexadecimal.
    """
    clean = _WHITESPACE_RE.sub("", hex_text)
    if len(clean) % 2 != 0:
        raise MalformedHexError(
            f"Hex string must have an even number of characters "
            f"(got {len(clean)})."
        )

    out = bytearray()
    for i in range(0, len(clean), 2):
        pair = clean[i : i + 2]
        if not (pair[0] in _HEX_DIGITS and pair[1] in _HEX_DIGITS):
            raise MalformedHexError(
                f"Invalid hex sequence at position {i}: {pair!r}"
            )
        out.append(int(pair, 16))
    return bytes(out)


def bytes_to_hex(data: bytes) -> str:
    """Format bytes as lower-case hex pairs separated by single spaces."""
    return " ".join(f"{b:02x}" for b in data)


def is_plausible_midi(data: bytes) -> bool:
    """True when the bytes start with the MThd magic.

    Necessary but not sufficient: chunk structure is not parsed.
    """
    return len(data) >= 4 and bytes(data[:4]) == MIDI_HEADER_MAGIC


def persist_midi(data: bytes, path: Path) -> Path:
    """Write MIDI bytes to path, creating parent directories.

    Raises InvalidMidiError for bytes that do not start with MThd so that
    garbage is never written under a .mid name.
    """
    if not is_plausible_midi(data):
        raise InvalidMidiError(
            f"Refusing to save {len(data)} bytes to {path}: missing MThd header."
        )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(bytes(data))
    log(f"[OK] MIDI file saved to {path}")
    return path


def create_test_midi() -> bytes:
    """Return a tiny known-good MIDI file."""
    return hex_to_bytes(TEST_MIDI_HEX)
