"""Records passed into and returned from clip generation."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from miditool.config import GenerationLimits, PipelineStageConfig
from miditool.tools import validate_identifier


@dataclass(frozen=True)
class ClipRef:
    """Identifiers locating one clip inside a project tree."""

    project_id: str
    group_id: str
    track_id: str
    clip_id: str

    def __post_init__(self) -> None:
        for value in (self.project_id, self.group_id, self.track_id, self.clip_id):
            validate_identifier(value)

    def directory(self, root: Path) -> Path:
        return root / self.project_id / self.group_id / self.track_id

    def file(self, root: Path, suffix: str) -> Path:
        """Path of a per-clip file, e.g. suffix=".mid" or "_idea_stage.log"."""
        return self.directory(root) / f"{self.clip_id}{suffix}"


@dataclass(frozen=True)
class GenerationRequest:
    """Immutable input bundle for one generate_clip call."""

    context: str
    clip: ClipRef
    stages: tuple[PipelineStageConfig, ...]
    limits: GenerationLimits = field(default_factory=GenerationLimits)


@dataclass(frozen=True)
class StageResult:
    """Raw text returned by one LLM call for one stage."""

    stage: str
    attempt: int
    text: str


@dataclass(frozen=True)
class ValidationVerdict:
    """Outcome of checking one attempt.

    critical_issues_found reflects the classifier only. Attempts rejected by a
    local check never reach it, so they carry passed=False with
    critical_issues_found=False.
    """

    passed: bool
    report_text: str
    critical_issues_found: bool
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class ClipArtifact:
    """What a generation run produced for a clip.

    path is None only when no attempt yielded decodable MIDI bytes.
    """

    prompt: str
    midi_hex: str = ""
    midi_bytes: bytes = b""
    path: Optional[Path] = None


@dataclass(frozen=True)
class GenerationOutcome:
    final_clip: ClipArtifact
    accepted: bool
    attempts_used: int
    last_verdict: ValidationVerdict
