"""Tests for file helpers, identifier validation and the player fallback."""

from unittest.mock import patch
import subprocess

import pytest

from miditool.tools import append_text, play_midi, validate_identifier


class TestValidateIdentifier:
    def test_simple_name(self):
        assert validate_identifier("example-project") == "example-project"

    def test_uuid(self):
        uid = "0f8fad5b-d9cb-469f-a165-70867728950e"
        assert validate_identifier(uid) == uid

    def test_rejects_leading_dot(self):
        with pytest.raises(ValueError, match="start with"):
            validate_identifier(".hidden")

    def test_rejects_separators(self):
        with pytest.raises(ValueError, match="path separators"):
            validate_identifier("a/b")
        with pytest.raises(ValueError, match="path separators"):
            validate_identifier("a\\b")

    def test_rejects_spaces(self):
        with pytest.raises(ValueError, match="unsupported characters"):
            validate_identifier("my project")

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            validate_identifier("")


class TestAppendText:
    def test_appends(self, tmp_path):
        path = tmp_path / "logs" / "a.log"
        append_text(path, "one\n")
        append_text(path, "two\n")
        assert path.read_text(encoding="utf-8") == "one\ntwo\n"


class TestPlayMidi:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            play_midi(tmp_path / "nope.mid")

    def test_falls_back_to_next_player(self, tmp_path):
        midi = tmp_path / "clip.mid"
        midi.write_bytes(b"MThd")
        results = iter([1, 0])

        def fake_run(cmd, **kw):
            return subprocess.CompletedProcess(cmd, next(results), "", "")

        with patch("miditool.tools.shutil.which", return_value="/usr/bin/x"), \
                patch("miditool.tools.run_cmd", side_effect=fake_run):
            assert play_midi(midi) == "timidity"

    def test_no_player_installed(self, tmp_path):
        midi = tmp_path / "clip.mid"
        midi.write_bytes(b"MThd")
        with patch("miditool.tools.shutil.which", return_value=None):
            assert play_midi(midi) is None
