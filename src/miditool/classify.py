"""Classify free-text MIDI validation reports as critical or not."""

from __future__ import annotations

from dataclasses import dataclass

CRITICAL_PHRASES: tuple[str, ...] = (
    "missing note-off",
    "no note-off",
    "note-on and note-off mismatch",
    "not properly paired",
    "note-off events do not match",
    "not correctly paired",
    "not be turned off properly",
    "lack of note-off",
    "without note-off",
    "no corresponding note-off",
    "notes to play forever",
    "improper note pairing",
    "incorrect channel",
    "incorrect note",
    "invalid header",
    "corrupt",
    "will not play",
    "cannot play",
    "playback issue",
    "critical error",
    "severe issue",
    "incorrect format",
)


@dataclass(frozen=True)
class CompoundRule:
    """Fires when every term in all_of occurs and, if given, one of any_of.

    Terms are matched independently, so word order does not matter.
    """

    name: str
    all_of: tuple[str, ...]
    any_of: tuple[str, ...] = ()

    def matches(self, lowered: str) -> bool:
        if not all(term in lowered for term in self.all_of):
            return False
        return not self.any_of or any(term in lowered for term in self.any_of)


COMPOUND_RULES: tuple[CompoundRule, ...] = (
    CompoundRule(
        name="repeated note-on without note-off",
        all_of=(
            "note-on events for the same note without "
            "corresponding note-off events",
        ),
    ),
    CompoundRule(
        name="track length miscalculated",
        all_of=("track length",),
        any_of=("miscalculated", "incorrect", "wrong", "mismatch"),
    ),
    CompoundRule(
        name="notes turned on but never turned off",
        all_of=("note", "turned on", "without", "turned off"),
    ),
)


def find_critical_issues(report_text: str) -> list[str]:
    """Names of every critical phrase and compound rule found in a report."""
    lowered = report_text.lower()
    found = [phrase for phrase in CRITICAL_PHRASES if phrase in lowered]
    found.extend(rule.name for rule in COMPOUND_RULES if rule.matches(lowered))
    return found


def has_critical_issues(report_text: str) -> bool:
    """True when the report mentions at least one critical problem."""
    return bool(find_critical_issues(report_text))
