"""Command-line interface for miditool."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from miditool.codec import create_test_midi, persist_midi
from miditool.config import PROVIDERS, LLMModelConfig, Settings, default_model_for
from miditool.errors import MidiToolError
from miditool.llm import check_llm_connection
from miditool.midi import summarize_midi
from miditool.models import GenerationOutcome
from miditool.output import banner, log
from miditool.pipeline import MusicGenerationPipeline, config_from_settings
from miditool.project import create_example_project, load_project, save_project
from miditool.tools import play_midi, validate_identifier


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    p = argparse.ArgumentParser(
        prog="miditool",
        description="Generate MIDI clips for a music project with an LLM.",
    )
    p.add_argument(
        "-o", "--out",
        type=Path,
        default=None,
        help="Output directory (default: $OUTPUT_DIR or ./output).",
    )
    p.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Dotenv file with API keys and settings (default: ./.env).",
    )
    sub = p.add_subparsers(dest="command", required=True)

    tl = sub.add_parser("test-llm", help="Test the LLM connection.")
    tl.add_argument("provider", nargs="?", default=None)
    tl.add_argument("model", nargs="?", default=None)

    sub.add_parser("test-midi", help="Write a known-good test MIDI file.")

    ce = sub.add_parser("create-example", help="Create an example project file.")
    ce.add_argument(
        "--name",
        type=str,
        default="example-project",
        help="Project file base name (default: example-project).",
    )

    gen = sub.add_parser("generate", help="Generate MIDI for every clip of a project.")
    gen.add_argument("project", type=str, help="Project file base name in the output dir.")
    gen.add_argument("provider", nargs="?", default=None)
    gen.add_argument("model", nargs="?", default=None)
    gen.add_argument(
        "--debug",
        action="store_true",
        help="Write per-stage LLM logs, hex dumps and validation reports.",
    )
    gen.add_argument("--max-retries", type=int, default=None)
    gen.add_argument("--max-concurrent", type=int, default=None)

    sub.add_parser("list-providers", help="List LLM providers and default models.")

    pl = sub.add_parser("play", help="Play a MIDI file with an external player.")
    pl.add_argument("file", type=Path)

    return p.parse_args(argv)


def _model_override(
    provider: Optional[str], model: Optional[str]
) -> Optional[LLMModelConfig]:
    if not provider:
        return None
    return LLMModelConfig(provider=provider, model=model or default_model_for(provider))


def _report(outcome: GenerationOutcome, label: str) -> None:
    path = outcome.final_clip.path
    status = "accepted" if outcome.accepted else "NOT accepted"
    log(f"  {label}: {status} after {outcome.attempts_used} attempt(s) -> {path}")
    if path is None:
        return
    try:
        s = summarize_midi(path)
    except Exception as e:  # corrupt meta events raise IndexError and others
        log(f"    (mido could not parse the file: {e})")
        return
    log(
        f"    {s.tracks} track(s), {s.total_notes} note(s), "
        f"{s.unmatched_notes} unmatched, {s.length_seconds:.1f}s"
    )


def cmd_generate(args: argparse.Namespace, settings: Settings) -> int:
    name = validate_identifier(args.project)
    project_path = settings.output_dir / f"{name}.json"
    if not project_path.exists():
        log(f"ERROR: project file not found: {project_path}")
        return 2

    override = _model_override(args.provider, args.model)
    if override is not None:
        log(f"Using custom LLM: {override}")
        settings = dataclasses.replace(settings, llm=override, validator=override)
    if args.debug:
        settings = dataclasses.replace(settings, debug=True)
    if args.max_retries is not None:
        settings = dataclasses.replace(settings, max_retry_attempts=args.max_retries)
    if args.max_concurrent is not None:
        settings = dataclasses.replace(
            settings, max_concurrent_requests=args.max_concurrent
        )

    project = load_project(project_path)
    pipeline = MusicGenerationPipeline(config_from_settings(settings))
    results = asyncio.run(pipeline.generate_project(project))
    save_project(project, project_path)

    banner("Results")
    failures = 0
    for (_, track, clip), result in zip(project.iter_clips(), results):
        label = f"{track.name} / {clip.name}"
        if isinstance(result, GenerationOutcome):
            _report(result, label)
            failures += 0 if result.accepted else 1
        else:
            log(f"  {label}: FAILED: {result}")
            failures += 1
    return 0 if failures == 0 else 1


def cmd_list_providers(settings: Settings) -> int:
    log("Provider    | Default model                  | API key variable")
    log("-" * 72)
    for name, info in PROVIDERS.items():
        log(f"{name:<11} | {info.default_model:<30} | {info.api_key_env or '-'}")
    log("")
    log(f"Current generation model: {settings.llm} (LLM_PROVIDER / LLM_MODEL)")
    log(f"Current validator model:  {settings.validator} (VALIDATOR_PROVIDER / VALIDATOR_MODEL)")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point returning an exit code."""
    args = parse_args(argv)
    # Variables already exported win over the file.
    load_dotenv(args.env_file)
    try:
        settings = Settings.from_env()
    except ValueError as e:
        log(f"ERROR: {e}")
        return 2
    if args.out is not None:
        settings = dataclasses.replace(settings, output_dir=args.out)

    try:
        if args.command == "test-llm":
            model = _model_override(args.provider, args.model) or settings.llm
            ok = asyncio.run(check_llm_connection(model))
            log("[OK] LLM connection successful" if ok else "[!!] LLM connection failed")
            return 0 if ok else 1

        if args.command == "test-midi":
            path = persist_midi(create_test_midi(), settings.output_dir / "test.mid")
            log(f"[OK] Test MIDI file saved to {path}")
            return 0

        if args.command == "create-example":
            name = validate_identifier(args.name)
            path = save_project(
                create_example_project(), settings.output_dir / f"{name}.json"
            )
            log(f"[OK] Example project saved to {path}")
            return 0

        if args.command == "generate":
            return cmd_generate(args, settings)

        if args.command == "list-providers":
            return cmd_list_providers(settings)

        if args.command == "play":
            player = play_midi(args.file)
            if player is None:
                log(
                    "ERROR: could not play the file. Install one of: "
                    "timidity, fluidsynth, pmidi, aplaymidi."
                )
                return 1
            return 0
    except (MidiToolError, OSError, ValueError) as e:
        log(f"\nFAILED: {e}")
        return 1

    log(f"ERROR: unknown command {args.command!r}")
    return 2


def main_cli() -> None:
    """Wrapper for the console_scripts entry point."""
    raise SystemExit(main())
