"""Configuration dataclasses for LLM providers, pipeline stages and limits."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

IDEA_STAGE = "idea-generation"
MIDI_STAGE = "midi-generation"


@dataclass(frozen=True)
class ProviderInfo:
    """How to reach one LLM provider through an OpenAI-compatible endpoint."""

    default_model: str
    api_key_env: Optional[str]
    base_url: Optional[str] = None
    base_url_env: Optional[str] = None


PROVIDERS: dict[str, ProviderInfo] = {
    "openai": ProviderInfo("gpt-4o", "OPENAI_API_KEY"),
    "anthropic": ProviderInfo(
        "claude-3-7-sonnet-20250219",
        "ANTHROPIC_API_KEY",
        base_url="https://api.anthropic.com/v1/",
    ),
    "mistral": ProviderInfo(
        "mistral-large-latest",
        "MISTRAL_API_KEY",
        base_url="https://api.mistral.ai/v1",
    ),
    "gemini": ProviderInfo(
        "gemini-1.5-pro-latest",
        "GOOGLE_API_KEY",
        base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
    ),
    "deepseek": ProviderInfo(
        "deepseek-coder",
        "DEEPSEEK_API_KEY",
        base_url="https://api.deepseek.com",
    ),
    "ollama": ProviderInfo(
        "llama3",
        None,
        base_url="http://localhost:11434/v1",
        base_url_env="OLLAMA_ENDPOINT",
    ),
}


def default_model_for(provider: str) -> str:
    """Return the default model name for a provider."""
    info = PROVIDERS.get(provider)
    return info.default_model if info else "unknown-model"


@dataclass(frozen=True)
class LLMModelConfig:
    """Provider and model pair used for one LLM call."""

    provider: str = "openai"
    model: str = "gpt-4o"

    def __str__(self) -> str:
        return f"{self.provider}/{self.model}"


@dataclass(frozen=True)
class PipelineStageConfig:
    """One named stage of the two-phase pipeline."""

    name: str
    system_prompt: str
    model_config: LLMModelConfig = field(default_factory=LLMModelConfig)


@dataclass(frozen=True)
class GenerationLimits:
    """Bounds on concurrency and retries for clip generation."""

    max_concurrent_requests: int = 2
    max_retry_attempts: int = 3
    debug: bool = False

    def __post_init__(self) -> None:
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be >= 1")
        if self.max_retry_attempts < 1:
            raise ValueError("max_retry_attempts must be >= 1")


@dataclass(frozen=True)
class GenerationConfig:
    """Everything a MusicGenerationPipeline needs besides its collaborators."""

    stages: tuple[PipelineStageConfig, ...]
    output_dir: Path = Path("output")
    limits: GenerationLimits = field(default_factory=GenerationLimits)
    validator_model: LLMModelConfig = field(default_factory=LLMModelConfig)

    def stage(self, name: str) -> Optional[PipelineStageConfig]:
        return find_stage(self.stages, name)


def find_stage(
    stages: tuple[PipelineStageConfig, ...], name: str
) -> Optional[PipelineStageConfig]:
    """Look up a stage by name, or None when absent."""
    for stage in stages:
        if stage.name == name:
            return stage
    return None


def _env_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    """Process-level defaults, read once from the environment at startup."""

    llm: LLMModelConfig = field(default_factory=LLMModelConfig)
    validator: LLMModelConfig = field(default_factory=LLMModelConfig)
    output_dir: Path = Path("output")
    max_concurrent_requests: int = 2
    max_retry_attempts: int = 3
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Settings:
        env = os.environ if environ is None else environ

        provider = env.get("LLM_PROVIDER") or "openai"
        model = env.get("LLM_MODEL") or default_model_for(provider)

        v_provider = env.get("VALIDATOR_PROVIDER") or provider
        if env.get("VALIDATOR_MODEL"):
            v_model = env["VALIDATOR_MODEL"]
        elif v_provider == provider:
            v_model = model
        else:
            v_model = default_model_for(v_provider)

        return cls(
            llm=LLMModelConfig(provider=provider, model=model),
            validator=LLMModelConfig(provider=v_provider, model=v_model),
            output_dir=Path(env.get("OUTPUT_DIR") or "output"),
            max_concurrent_requests=_env_int(env, "MAX_CONCURRENT_REQUESTS", 2),
            max_retry_attempts=_env_int(env, "MAX_RETRY_ATTEMPTS", 3),
            debug=_env_bool(env.get("MIDITOOL_DEBUG")),
        )
