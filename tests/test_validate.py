"""Tests for structural checks and the LLM validation collaborator."""

from unittest.mock import AsyncMock, patch

import pytest

from miditool.config import LLMModelConfig
from miditool.tools import write_text
from miditool.validate import check_structure, validate_midi_hex

GOOD = (
    "4D 54 68 64 00 00 00 06 00 01 00 01 01 E0 "
    "4D 54 72 6B 00 00 00 04 00 FF 2F 00"
)


class TestCheckStructure:
    def test_valid_passes(self):
        assert check_structure(GOOD) == []

    def test_lowercase_passes(self):
        assert check_structure(GOOD.lower()) == []

    def test_missing_track_header_only(self):
        hex_text = "4D 54 68 64 00 00 00 06 00 01 00 01 01 E0 00 FF 2F 00"
        issues = check_structure(hex_text)
        assert len(issues) == 1
        assert "MTrk" in issues[0]

    def test_missing_header(self):
        issues = check_structure("00 " + GOOD)
        assert len(issues) == 1
        assert "MThd" in issues[0]

    def test_too_short(self):
        issues = check_structure("4D 54 68 64 4D 54 72 6B")
        assert len(issues) == 1
        assert "too short" in issues[0]

    def test_reports_multiple_issues(self):
        issues = check_structure("00 11")
        assert len(issues) == 3


class TestValidateMidiHex:
    @pytest.mark.asyncio
    async def test_returns_report_and_passes_hex(self):
        llm = AsyncMock(return_value="Looks fine.")
        model = LLMModelConfig("mistral", "mistral-large-latest")

        report = await validate_midi_hex(GOOD, model_config=model, llm=llm)

        assert report == "Looks fine."
        system, user, used_model = llm.call_args.args
        assert "MIDI protocol expert" in system
        assert GOOD in user
        assert used_model == model
        assert llm.call_args.kwargs["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_writes_report_file(self, tmp_path):
        llm = AsyncMock(return_value="Missing note-off for note 60.")
        path = tmp_path / "reports" / "clip_validation.txt"

        await validate_midi_hex(
            GOOD, model_config=LLMModelConfig(), llm=llm, report_path=path
        )

        text = path.read_text(encoding="utf-8")
        assert "MIDI VALIDATION REPORT" in text
        assert "Missing note-off for note 60." in text

    @pytest.mark.asyncio
    async def test_report_file_written_in_worker_thread(self, tmp_path):
        llm = AsyncMock(return_value="Looks fine.")
        path = tmp_path / "clip_validation.txt"

        with patch("miditool.validate.asyncio.to_thread", new=AsyncMock()) as to_thread:
            await validate_midi_hex(
                GOOD, model_config=LLMModelConfig(), llm=llm, report_path=path
            )

        assert to_thread.await_count == 1
        func, target, body = to_thread.await_args.args
        assert func is write_text
        assert target == path
        assert "Looks fine." in body
