"""Pull the MIDI hex payload out of free-text LLM responses."""

from __future__ import annotations

import re

from miditool.errors import NoMidiFoundError

HEADER_TOKENS_UPPER = "4D 54 68 64"
HEADER_TOKENS_LOWER = "4d 54 68 64"

# Prose that LLMs tend to put after the payload.
END_MARKERS: tuple[str, ...] = (
    "```",
    "Note:",
    "This MIDI file",
    "I've generated",
    "The above MIDI",
    "\n\n",
)

# Marker searches start past the header so they cannot hit inside it.
MARKER_SEARCH_OFFSET = 10

_NON_HEX_RE = re.compile(r"[^0-9A-Fa-f\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_hex(text: str) -> str:
    """Drop every non-hex character and collapse whitespace to single spaces."""
    t = text.strip()
    t = _NON_HEX_RE.sub("", t)
    t = _WHITESPACE_RE.sub(" ", t)
    return t.strip()


def find_header_offset(text: str) -> int:
    """Offset of the MThd token sequence, upper-case spelling preferred.

    Returns -1 when neither spelling occurs.
    """
    idx = text.find(HEADER_TOKENS_UPPER)
    if idx != -1:
        return idx
    return text.find(HEADER_TOKENS_LOWER)


def extract_midi_hex(response_text: str) -> str:
    """Return the cleaned hex token stream embedded in an LLM response.

    The payload starts at the MThd token sequence and runs until the
    earliest trailing-prose marker (or the end of the text).
    """
    start = find_header_offset(response_text)
    if start == -1:
        raise NoMidiFoundError("No valid MIDI data found in the response.")

    end = len(response_text)
    for marker in END_MARKERS:
        idx = response_text.find(marker, start + MARKER_SEARCH_OFFSET)
        if idx != -1 and idx < end:
            end = idx

    return clean_hex(response_text[start:end])
