"""Local structural checks and LLM-based validation of MIDI hex text."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Optional

from miditool.config import LLMModelConfig
from miditool.llm import call_llm
from miditool.output import log
from miditool.prompts import VALIDATION_SYSTEM_PROMPT, VALIDATION_USER_PROMPT_TEMPLATE
from miditool.tools import write_text

HEADER_TOKENS = "4D 54 68 64"
TRACK_TOKENS = "4D 54 72 6B"

# MThd chunk (14 bytes) with no tracks is the smallest thing worth decoding.
MIN_MIDI_BYTES = 14

VALIDATION_TEMPERATURE = 0.2


def check_structure(hex_text: str) -> list[str]:
    """Cheap offline checks on extracted hex; an empty list means pass."""
    upper = hex_text.strip().upper()
    issues: list[str] = []
    if not upper.startswith(HEADER_TOKENS):
        issues.append(f"Missing MThd header: data must start with {HEADER_TOKENS}.")
    if TRACK_TOKENS not in upper:
        issues.append(f"Missing MTrk track header ({TRACK_TOKENS}).")
    n_bytes = len("".join(upper.split())) // 2
    if n_bytes < MIN_MIDI_BYTES:
        issues.append(
            f"MIDI data too short: {n_bytes} bytes (need at least {MIN_MIDI_BYTES})."
        )
    return issues


async def validate_midi_hex(
    midi_hex: str,
    *,
    model_config: LLMModelConfig,
    llm: Callable[..., Awaitable[str]] = call_llm,
    report_path: Optional[Path] = None,
    debug: bool = False,
) -> str:
    """Ask an LLM to review MIDI hex and return its free-text report.

    When report_path is given the report is also written there.
    """
    log(f"Requesting LLM validation from {model_config}...")
    report = await llm(
        VALIDATION_SYSTEM_PROMPT,
        VALIDATION_USER_PROMPT_TEMPLATE.format(midi_hex=midi_hex),
        model_config,
        temperature=VALIDATION_TEMPERATURE,
        debug=debug,
    )
    if report_path is not None:
        await asyncio.to_thread(
            write_text,
            report_path,
            "================ MIDI VALIDATION REPORT ================\n"
            f"{report}\n"
            "================ END OF REPORT ================\n",
        )
        log(f"MIDI validation report saved to {report_path}")
    return report
