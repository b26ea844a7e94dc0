"""Project / group / track / clip containers and their JSON persistence."""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from miditool.tools import read_text, write_text


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class Clip:
    name: str
    start_time: float
    duration: float
    description: Optional[str] = None
    midi_data: Optional[str] = None
    prompt: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


@dataclass
class Track:
    name: str
    instrument: str
    description: Optional[str] = None
    clips: list[Clip] = field(default_factory=list)
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def add_clip(self, name: str, start_time: float, duration: float, **kw: Any) -> Clip:
        clip = Clip(name=name, start_time=start_time, duration=duration, **kw)
        self.clips.append(clip)
        return clip


@dataclass
class Group:
    name: str
    role: Optional[str] = None
    description: Optional[str] = None
    tracks: list[Track] = field(default_factory=list)
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def add_track(self, name: str, instrument: str, **kw: Any) -> Track:
        track = Track(name=name, instrument=instrument, **kw)
        self.tracks.append(track)
        return track


@dataclass
class Project:
    """Top-level container; the unit that is saved to and loaded from JSON."""

    name: str
    description: Optional[str] = None
    style: Optional[str] = None
    tempo: Optional[int] = None
    key: Optional[str] = None
    time_signature: Optional[str] = None
    groups: list[Group] = field(default_factory=list)
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def add_group(self, name: str, **kw: Any) -> Group:
        group = Group(name=name, **kw)
        self.groups.append(group)
        return group

    def iter_clips(self) -> Iterator[tuple[Group, Track, Clip]]:
        for group in self.groups:
            for track in group.tracks:
                for clip in track.clips:
                    yield group, track, clip

    def to_dict(self) -> dict[str, Any]:
        def convert(obj: Any) -> Any:
            if isinstance(obj, datetime):
                return obj.isoformat()
            if isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            if isinstance(obj, list):
                return [convert(v) for v in obj]
            return obj

        return convert(asdict(self))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Project:
        groups = []
        for g in data.get("groups", []):
            tracks = []
            for t in g.get("tracks", []):
                clips = [
                    Clip(**_with_times(c)) for c in t.get("clips", [])
                ]
                tracks.append(Track(**_with_times({**t, "clips": clips})))
            groups.append(Group(**_with_times({**g, "tracks": tracks})))
        return cls(**_with_times({**data, "groups": groups}))


def _with_times(d: dict[str, Any]) -> dict[str, Any]:
    out = dict(d)
    for key in ("created_at", "updated_at"):
        if key in out:
            out[key] = _parse_time(out[key])
    return out


def build_context(project: Project, group: Group, track: Track, clip: Clip) -> str:
    """Flatten the clip's place in the project into prompt text."""

    def na(value: Any) -> Any:
        return "N/A" if value in (None, "") else value

    return (
        "PROJECT:\n"
        f"  Name: {project.name}\n"
        f"  Description: {na(project.description)}\n"
        f"  Style: {na(project.style)}\n"
        f"  Tempo: {na(project.tempo)}\n"
        f"  Key: {na(project.key)}\n"
        f"  Time Signature: {na(project.time_signature)}\n"
        "\n"
        "GROUP:\n"
        f"  Name: {group.name}\n"
        f"  Role: {na(group.role)}\n"
        f"  Description: {na(group.description)}\n"
        "\n"
        "TRACK:\n"
        f"  Name: {track.name}\n"
        f"  Description: {na(track.description)}\n"
        f"  Instrument: {track.instrument}\n"
        "\n"
        "CLIP:\n"
        f"  Name: {clip.name}\n"
        f"  Description: {na(clip.description)}\n"
        f"  Start Time: {clip.start_time}\n"
        f"  Duration: {clip.duration}\n"
    )


def create_example_project(name: str = "Example Project") -> Project:
    """A small pop project: rhythm (drums, bass) and melody (piano) groups."""
    project = Project(
        name=name,
        description="An example music project",
        style="Pop",
        tempo=120,
        key="C major",
        time_signature="4/4",
    )
    rhythm = project.add_group(
        "Rhythm", role="rhythm", description="Rhythm section for the project"
    )
    melody = project.add_group(
        "Melody", role="melody", description="Melody section for the project"
    )

    drums = rhythm.add_track("Drums", "Drums", description="Main drum track")
    bass = rhythm.add_track("Bass", "Bass Guitar", description="Bass guitar track")
    piano = melody.add_track("Piano", "Grand Piano", description="Main piano track")

    drums.add_clip("Drum Pattern", 0, 4, description="Main drum pattern")
    bass.add_clip("Bass Line", 0, 4, description="Main bass line")
    piano.add_clip("Piano Melody", 0, 4, description="Main piano melody")
    return project


def save_project(project: Project, path: Path) -> Path:
    write_text(path, json.dumps(project.to_dict(), indent=2) + "\n")
    return path


def load_project(path: Path) -> Project:
    return Project.from_dict(json.loads(read_text(path)))
