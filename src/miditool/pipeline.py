"""Two-phase clip generation: idea -> MIDI hex -> checks -> retry with feedback."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Awaitable, Callable, Optional

from miditool.classify import find_critical_issues
from miditool.codec import hex_to_bytes, persist_midi
from miditool.config import (
    IDEA_STAGE,
    MIDI_STAGE,
    GenerationConfig,
    GenerationLimits,
    LLMModelConfig,
    PipelineStageConfig,
    Settings,
    find_stage,
)
from miditool.errors import (
    CollaboratorError,
    MalformedHexError,
    NoMidiFoundError,
    StageConfigurationError,
)
from miditool.extract import extract_midi_hex
from miditool.llm import call_llm
from miditool.models import (
    ClipArtifact,
    ClipRef,
    GenerationOutcome,
    GenerationRequest,
    StageResult,
    ValidationVerdict,
)
from miditool.output import banner, log, warn, StepTimer
from miditool.project import Clip, Group, Project, Track, build_context
from miditool.prompts import (
    FEEDBACK_TEMPLATE,
    IDEA_SYSTEM_PROMPT,
    MIDI_SYSTEM_PROMPT,
    MIDI_USER_PROMPT_TEMPLATE,
)
from miditool.tools import write_text
from miditool.validate import check_structure, validate_midi_hex

LLMFn = Callable[..., Awaitable[str]]
ValidatorFn = Callable[..., Awaitable[str]]

INVALID_SUFFIX = "_invalid.mid"


def default_stages(
    model_config: LLMModelConfig,
) -> tuple[PipelineStageConfig, ...]:
    """The idea and MIDI stages, both on one model."""
    return (
        PipelineStageConfig(IDEA_STAGE, IDEA_SYSTEM_PROMPT, model_config),
        PipelineStageConfig(MIDI_STAGE, MIDI_SYSTEM_PROMPT, model_config),
    )


def config_from_settings(settings: Settings) -> GenerationConfig:
    return GenerationConfig(
        stages=default_stages(settings.llm),
        output_dir=settings.output_dir,
        limits=GenerationLimits(
            max_concurrent_requests=settings.max_concurrent_requests,
            max_retry_attempts=settings.max_retry_attempts,
            debug=settings.debug,
        ),
        validator_model=settings.validator,
    )


@dataclass(frozen=True)
class AttemptResult:
    """Tagged result of one pass through the MIDI stage.

    midi_bytes is empty when the attempt failed before decoding.
    """

    attempt: int
    verdict: ValidationVerdict
    midi_hex: str = ""
    midi_bytes: bytes = b""

    @property
    def accepted(self) -> bool:
        return self.verdict.passed


def _failed(
    attempt: int,
    reason: str,
    issues: list[str],
    *,
    midi_hex: str = "",
    midi_bytes: bytes = b"",
) -> AttemptResult:
    verdict = ValidationVerdict(
        passed=False,
        report_text=reason,
        critical_issues_found=False,
        issues=tuple(issues),
    )
    return AttemptResult(
        attempt=attempt, verdict=verdict, midi_hex=midi_hex, midi_bytes=midi_bytes
    )


def build_midi_prompt(
    context: str, idea: str, feedback: Optional[AttemptResult]
) -> str:
    """Stage prompt; after a failed attempt its report is appended verbatim."""
    prompt = MIDI_USER_PROMPT_TEMPLATE.format(context=context, idea=idea)
    if feedback is not None:
        prompt += FEEDBACK_TEMPLATE.format(
            attempt=feedback.attempt, report=feedback.verdict.report_text
        )
    return prompt


class MusicGenerationPipeline:
    """Generates MIDI clips with an LLM, validating and retrying each one.

    llm must follow call_llm's signature. validator receives the hex text
    and a report_path keyword and returns a free-text report; by default it
    is an LLM review on config.validator_model.
    """

    def __init__(
        self,
        config: GenerationConfig,
        *,
        llm: LLMFn = call_llm,
        validator: Optional[ValidatorFn] = None,
    ) -> None:
        self.config = config
        self.llm = llm
        self.validator = validator or partial(
            validate_midi_hex,
            model_config=config.validator_model,
            llm=llm,
            debug=config.limits.debug,
        )
        self._slots = asyncio.Semaphore(config.limits.max_concurrent_requests)
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        """Number of calls currently holding an admission slot."""
        return self._in_flight

    def build_request(
        self, project: Project, group: Group, track: Track, clip: Clip
    ) -> GenerationRequest:
        return GenerationRequest(
            context=build_context(project, group, track, clip),
            clip=ClipRef(project.id, group.id, track.id, clip.id),
            stages=self.config.stages,
            limits=self.config.limits,
        )

    async def generate_project(
        self, project: Project
    ) -> list[GenerationOutcome | BaseException]:
        """Generate every clip concurrently; failures are returned, not raised.

        Results are in project order. Every clip that produced an outcome gets
        its idea text and hex written back onto the Clip object.
        """
        entries = list(project.iter_clips())
        requests = [self.build_request(project, g, t, c) for g, t, c in entries]
        results = await asyncio.gather(
            *(self.generate_clip(r) for r in requests), return_exceptions=True
        )
        for (_, _, clip), result in zip(entries, results):
            if isinstance(result, GenerationOutcome):
                clip.prompt = result.final_clip.prompt
                clip.midi_data = result.final_clip.midi_hex or None
        return list(results)

    async def generate_clip(self, request: GenerationRequest) -> GenerationOutcome:
        """Run the idea stage, then the bounded MIDI retry loop, then save.

        Exhausting all attempts is not an error: the outcome says
        accepted=False and the best attempt is saved under *_invalid.mid.
        """
        idea_stage = find_stage(request.stages, IDEA_STAGE)
        midi_stage = find_stage(request.stages, MIDI_STAGE)
        if idea_stage is None:
            raise StageConfigurationError(
                f"Missing {IDEA_STAGE!r} stage in pipeline configuration."
            )
        if midi_stage is None:
            raise StageConfigurationError(
                f"Missing {MIDI_STAGE!r} stage in pipeline configuration."
            )

        async with self._slots:
            self._in_flight += 1
            try:
                return await self._generate(request, idea_stage, midi_stage)
            finally:
                self._in_flight -= 1

    async def _generate(
        self,
        request: GenerationRequest,
        idea_stage: PipelineStageConfig,
        midi_stage: PipelineStageConfig,
    ) -> GenerationOutcome:
        clip = request.clip
        root = self.config.output_dir
        debug = request.limits.debug

        banner(f"[1/3] {idea_stage.name} for clip {clip.clip_id}")
        with StepTimer(f"{idea_stage.name} ({idea_stage.model_config})"):
            idea_text = await self.llm(
                idea_stage.system_prompt,
                request.context,
                idea_stage.model_config,
                debug=debug,
                log_path=clip.file(root, "_idea_stage.log") if debug else None,
            )
        idea = StageResult(stage=idea_stage.name, attempt=1, text=idea_text)

        max_attempts = request.limits.max_retry_attempts
        history: list[AttemptResult] = []
        feedback: Optional[AttemptResult] = None

        for attempt in range(1, max_attempts + 1):
            banner(
                f"[2/3] {midi_stage.name} for clip {clip.clip_id} "
                f"(attempt {attempt}/{max_attempts})"
            )
            result = await self._attempt(
                request, midi_stage, idea, attempt, feedback
            )
            history.append(result)
            if result.accepted:
                log(f"[OK] Attempt {attempt} passed validation.")
                break
            warn(
                f"Attempt {attempt} rejected: "
                + (", ".join(result.verdict.issues) or "see report")
            )
            feedback = result

        return await self._finalize(request, idea, history)

    async def _attempt(
        self,
        request: GenerationRequest,
        stage: PipelineStageConfig,
        idea: StageResult,
        attempt: int,
        feedback: Optional[AttemptResult],
    ) -> AttemptResult:
        clip = request.clip
        root = self.config.output_dir
        debug = request.limits.debug

        prompt = build_midi_prompt(request.context, idea.text, feedback)
        try:
            with StepTimer(f"{stage.name} ({stage.model_config})"):
                text = await self.llm(
                    stage.system_prompt,
                    prompt,
                    stage.model_config,
                    debug=debug,
                    log_path=(
                        clip.file(root, f"_midi_stage_attempt{attempt}.log")
                        if debug
                        else None
                    ),
                )
        except CollaboratorError as e:
            return _failed(attempt, f"LLM call failed: {e}", ["llm call failed"])
        response = StageResult(stage=stage.name, attempt=attempt, text=text)

        try:
            midi_hex = extract_midi_hex(response.text)
        except NoMidiFoundError as e:
            return _failed(
                attempt,
                f"{e} The response must contain MIDI hex starting with 4D 54 68 64.",
                ["no midi found"],
            )

        if debug:
            await asyncio.to_thread(
                write_text,
                clip.file(root, f"_hex_log_attempt{attempt}.txt"),
                _hex_debug_dump(response.text, midi_hex),
            )

        issues = check_structure(midi_hex)
        if issues:
            return _failed(
                attempt,
                "Structural check failed:\n- " + "\n- ".join(issues),
                issues,
                midi_hex=midi_hex,
            )

        try:
            midi_bytes = hex_to_bytes(midi_hex)
        except MalformedHexError as e:
            return _failed(
                attempt, f"Malformed hex: {e}", ["malformed hex"], midi_hex=midi_hex
            )

        try:
            with StepTimer("LLM validation"):
                report = await self.validator(
                    midi_hex,
                    report_path=(
                        clip.file(root, f"_validation_attempt{attempt}.txt")
                        if debug
                        else None
                    ),
                )
        except CollaboratorError as e:
            return _failed(
                attempt,
                f"Validation call failed: {e}",
                ["validation call failed"],
                midi_hex=midi_hex,
                midi_bytes=midi_bytes,
            )

        found = find_critical_issues(report)
        verdict = ValidationVerdict(
            passed=not found,
            report_text=report,
            critical_issues_found=bool(found),
            issues=tuple(found),
        )
        return AttemptResult(
            attempt=attempt, verdict=verdict, midi_hex=midi_hex, midi_bytes=midi_bytes
        )

    async def _finalize(
        self,
        request: GenerationRequest,
        idea: StageResult,
        history: list[AttemptResult],
    ) -> GenerationOutcome:
        banner(f"[3/3] Saving clip {request.clip.clip_id}")
        last = history[-1]
        clip = request.clip
        root = self.config.output_dir

        if last.accepted:
            chosen: Optional[AttemptResult] = last
            path: Optional[Path] = clip.file(root, ".mid")
        else:
            chosen = next((r for r in reversed(history) if r.midi_bytes), None)
            path = clip.file(root, INVALID_SUFFIX)

        if chosen is None:
            warn(
                f"No attempt produced decodable MIDI for clip {clip.clip_id}; "
                "nothing saved."
            )
            artifact = ClipArtifact(prompt=idea.text)
        else:
            saved = await asyncio.to_thread(persist_midi, chosen.midi_bytes, path)
            if not last.accepted:
                warn(f"Best-effort MIDI (attempt {chosen.attempt}) saved to {saved}")
            artifact = ClipArtifact(
                prompt=idea.text,
                midi_hex=chosen.midi_hex,
                midi_bytes=chosen.midi_bytes,
                path=saved,
            )

        return GenerationOutcome(
            final_clip=artifact,
            accepted=last.accepted,
            attempts_used=len(history),
            last_verdict=last.verdict,
        )


def _hex_debug_dump(raw_response: str, extracted: str) -> str:
    header_ok = extracted.upper().startswith("4D 54 68 64")
    n_tokens = len(extracted.split())
    return (
        "================ RAW LLM RESPONSE ================\n"
        f"{raw_response}\n\n"
        "================ EXTRACTED MIDI HEX ================\n"
        f"{extracted}\n\n"
        "================ VALIDATION INFO ================\n"
        f"Header valid: {header_ok}\n"
        f"Length: {n_tokens} bytes\n"
    )
