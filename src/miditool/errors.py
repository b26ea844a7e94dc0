"""Custom exceptions for the MIDI generation pipeline."""

from __future__ import annotations


class MidiToolError(RuntimeError):
    """Base class for every failure raised by miditool."""


class MalformedHexError(MidiToolError, ValueError):
    """Hex text has an odd length or non-hex characters after cleaning."""


class NoMidiFoundError(MidiToolError):
    """No MIDI header token sequence was found in an LLM response."""


class InvalidMidiError(MidiToolError):
    """Bytes refused for persistence because they do not look like MIDI."""


class StageConfigurationError(MidiToolError):
    """The pipeline configuration is missing a required named stage."""


class CollaboratorError(MidiToolError):
    """An external LLM call or LLM validation exhausted its retries."""
