"""Tests for the mido read-back summary."""

from pathlib import Path
from unittest.mock import MagicMock, patch

from miditool.codec import create_test_midi, persist_midi
from miditool.midi import summarize_midi


def _msg(kind, channel, note, velocity):
    msg = MagicMock()
    msg.type = kind
    msg.channel = channel
    msg.note = note
    msg.velocity = velocity
    return msg


def _make_mock_midi(tracks):
    """tracks: list of lists of (type, channel, pitch, velocity)."""
    mock_midi = MagicMock()
    mock_tracks = []
    for events in tracks:
        messages = [_msg(*e) for e in events]
        track = MagicMock()
        track.__iter__ = lambda self, m=messages: iter(m)
        mock_tracks.append(track)
    mock_midi.tracks = mock_tracks
    mock_midi.ticks_per_beat = 480
    mock_midi.type = 1
    mock_midi.length = 2.0
    return mock_midi


class TestSummarizeMidi:
    @patch("miditool.midi.mido.MidiFile")
    def test_counts_per_channel(self, mock_midifile):
        mock_midifile.return_value = _make_mock_midi([
            [
                ("note_on", 0, 60, 100),
                ("note_off", 0, 60, 0),
                ("note_on", 9, 36, 90),
                ("note_on", 9, 36, 0),  # velocity 0 = note off
            ]
        ])
        s = summarize_midi(Path("dummy.mid"))
        assert s.tracks == 1
        assert s.note_ons == {0: 1, 9: 1}
        assert s.total_notes == 2
        assert s.unmatched_notes == 0

    @patch("miditool.midi.mido.MidiFile")
    def test_unmatched_note_ons(self, mock_midifile):
        mock_midifile.return_value = _make_mock_midi([
            [("note_on", 0, 60, 100), ("note_on", 0, 60, 100), ("note_off", 0, 60, 0)],
            [("note_on", 1, 64, 80)],
        ])
        s = summarize_midi(Path("dummy.mid"))
        assert s.tracks == 2
        assert s.unmatched_notes == 2

    @patch("miditool.midi.mido.MidiFile")
    def test_empty(self, mock_midifile):
        mock_midifile.return_value = _make_mock_midi([])
        s = summarize_midi(Path("dummy.mid"))
        assert s.tracks == 0
        assert s.total_notes == 0

    def test_real_file(self, tmp_path):
        path = persist_midi(create_test_midi(), tmp_path / "test.mid")
        s = summarize_midi(path)
        assert s.tracks == 1
        assert s.ticks_per_beat == 480
        assert s.note_ons == {0: 1}
        assert s.unmatched_notes == 0
