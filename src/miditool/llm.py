"""Async LLM calls through OpenAI-compatible endpoints, with retries."""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

from miditool.config import PROVIDERS, LLMModelConfig
from miditool.errors import CollaboratorError
from miditool.output import log, warn
from miditool.prompts import (
    CONNECTION_TEST_SYSTEM_PROMPT,
    CONNECTION_TEST_USER_PROMPT,
)
from miditool.tools import append_text

MAX_RETRIES = 3
RETRY_BACKOFF_SECONDS = 1.0

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048


_clients: dict[str, AsyncOpenAI] = {}


def make_client(provider: str) -> AsyncOpenAI:
    """Build (and cache) an AsyncOpenAI client pointed at a provider."""
    if provider in _clients:
        return _clients[provider]

    info = PROVIDERS.get(provider)
    if info is None:
        raise CollaboratorError(
            f"Unknown LLM provider {provider!r}. "
            f"Known providers: {', '.join(sorted(PROVIDERS))}"
        )

    base_url = info.base_url
    if info.base_url_env and os.getenv(info.base_url_env):
        base_url = os.environ[info.base_url_env]

    # Local servers accept any key, but the SDK insists on one.
    api_key = os.getenv(info.api_key_env) if info.api_key_env else provider
    try:
        client = AsyncOpenAI(api_key=api_key, base_url=base_url)
    except OpenAIError as e:
        raise CollaboratorError(f"Cannot create {provider} client: {e}") from e
    _clients[provider] = client
    return client


async def _log_llm_call(
    kind: str, data: dict[str, Any], log_path: Optional[Path]
) -> None:
    """Append one framed input/output record to a debug log file."""
    if log_path is None:
        return
    stamp = datetime.now(timezone.utc).isoformat()
    body = json.dumps(data, indent=2, default=str)
    await asyncio.to_thread(
        append_text,
        log_path,
        f"\n==== {kind.upper()} [{stamp}] ====\n{body}\n"
        + "=" * 38
        + "\n",
    )


async def call_llm(
    system_prompt: str,
    user_prompt: str,
    model_config: LLMModelConfig,
    *,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    debug: bool = False,
    log_path: Optional[Path] = None,
) -> str:
    """Send a system + user prompt and return the text of the reply.

    Retries up to MAX_RETRIES times with exponential backoff, then raises
    CollaboratorError with the last underlying error.
    """
    if debug:
        await _log_llm_call(
            "input",
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "model_config": str(model_config),
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
            log_path,
        )

    client = make_client(model_config.provider)
    last_err: Optional[Exception] = None

    for attempt in range(1, MAX_RETRIES + 1):
        try:
            log(f"LLM call to {model_config}")
            resp = await client.chat.completions.create(
                model=model_config.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
            text = resp.choices[0].message.content or ""
            if debug:
                await _log_llm_call("output", {"response": text}, log_path)
            return text
        except Exception as e:
            last_err = e
            warn(f"LLM call failed (attempt {attempt}/{MAX_RETRIES}): {e}")
            if attempt < MAX_RETRIES:
                backoff = RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1))
                log(f"Retrying in {backoff:.1f}s...")
                await asyncio.sleep(backoff)

    raise CollaboratorError(
        f"LLM call to {model_config} failed after {MAX_RETRIES} attempts: "
        f"{last_err}"
    ) from last_err


async def check_llm_connection(model_config: LLMModelConfig) -> bool:
    """Send a trivial prompt and report whether a reply came back."""
    log(f"LLM test using {model_config}")
    try:
        reply = await call_llm(
            CONNECTION_TEST_SYSTEM_PROMPT,
            CONNECTION_TEST_USER_PROMPT,
            model_config,
        )
    except CollaboratorError as e:
        log(f"ERROR: LLM connection test failed: {e}")
        return False
    log(f"LLM test response: {reply}")
    return True
