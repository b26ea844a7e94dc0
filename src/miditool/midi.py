"""Read saved MIDI files back with mido to summarize what was generated."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

import mido


@dataclass
class MidiSummary:
    """Counts gathered from a parsed MIDI file."""

    tracks: int = 0
    ticks_per_beat: int = 0
    length_seconds: float = 0.0
    note_ons: Dict[int, int] = field(default_factory=dict)
    unmatched_notes: int = 0

    @property
    def total_notes(self) -> int:
        return sum(self.note_ons.values())


def summarize_midi(midi_path: Path) -> MidiSummary:
    """Count note-ons per channel and note-ons never switched off.

    A note-on with velocity 0 counts as a note-off. Raises whatever mido
    raises (OSError, EOFError, ValueError) for files it cannot parse.
    """
    mid = mido.MidiFile(midi_path)
    summary = MidiSummary(
        tracks=len(mid.tracks), ticks_per_beat=mid.ticks_per_beat
    )

    for track in mid.tracks:
        sounding: Dict[tuple[int, int], int] = {}
        for msg in track:
            if msg.type == "note_on" and msg.velocity > 0:
                ch = getattr(msg, "channel", 0)
                summary.note_ons[ch] = summary.note_ons.get(ch, 0) + 1
                key = (ch, msg.note)
                sounding[key] = sounding.get(key, 0) + 1
            elif msg.type in ("note_off", "note_on"):
                key = (getattr(msg, "channel", 0), msg.note)
                if sounding.get(key):
                    sounding[key] -= 1
        summary.unmatched_notes += sum(sounding.values())

    summary.length_seconds = mid.length if mid.type != 2 else 0.0
    return summary
