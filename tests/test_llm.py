"""Tests for the LLM call wrapper: retries, debug logs and provider clients."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from miditool import llm as llm_mod
from miditool.config import LLMModelConfig
from miditool.errors import CollaboratorError
from miditool.llm import call_llm, check_llm_connection, make_client
from miditool.tools import append_text

MODEL = LLMModelConfig("openai", "gpt-4o")


def _reply(text):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))]
    )


def _fake_client(side_effect):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=side_effect)
    return client


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(llm_mod, "RETRY_BACKOFF_SECONDS", 0)


class TestCallLLM:
    @pytest.mark.asyncio
    async def test_returns_message_text(self):
        client = _fake_client([_reply("hello")])
        with patch("miditool.llm.make_client", return_value=client):
            text = await call_llm("sys", "user", MODEL, temperature=0.1)

        assert text == "hello"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 2048
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert kwargs["messages"][1] == {"role": "user", "content": "user"}

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        client = _fake_client([RuntimeError("503"), _reply("ok")])
        with patch("miditool.llm.make_client", return_value=client):
            assert await call_llm("s", "u", MODEL) == "ok"
        assert client.chat.completions.create.await_count == 2

    @pytest.mark.asyncio
    async def test_exhaustion_raises_collaborator_error(self):
        client = _fake_client(RuntimeError("503"))
        with patch("miditool.llm.make_client", return_value=client):
            with pytest.raises(CollaboratorError, match="after 3 attempts"):
                await call_llm("s", "u", MODEL)
        assert client.chat.completions.create.await_count == 3

    @pytest.mark.asyncio
    async def test_none_content_is_empty_string(self):
        client = _fake_client([_reply(None)])
        with patch("miditool.llm.make_client", return_value=client):
            assert await call_llm("s", "u", MODEL) == ""

    @pytest.mark.asyncio
    async def test_debug_appends_input_and_output(self, tmp_path):
        log_path = tmp_path / "logs" / "clip_idea_stage.log"
        client = _fake_client([_reply("an idea")])
        with patch("miditool.llm.make_client", return_value=client):
            await call_llm("sys", "user", MODEL, debug=True, log_path=log_path)

        text = log_path.read_text(encoding="utf-8")
        assert "==== INPUT" in text
        assert "==== OUTPUT" in text
        assert "an idea" in text

    @pytest.mark.asyncio
    async def test_debug_log_written_in_worker_thread(self, tmp_path):
        log_path = tmp_path / "clip_idea_stage.log"
        client = _fake_client([_reply("an idea")])
        with patch("miditool.llm.make_client", return_value=client), patch(
            "miditool.llm.asyncio.to_thread", new=AsyncMock()
        ) as to_thread:
            await call_llm("sys", "user", MODEL, debug=True, log_path=log_path)

        assert to_thread.await_count == 2
        for call in to_thread.await_args_list:
            assert call.args[0] is append_text
            assert call.args[1] == log_path
        assert not log_path.exists()


class TestMakeClient:
    def test_unknown_provider(self):
        with pytest.raises(CollaboratorError, match="Unknown LLM provider"):
            make_client("nope")

    def test_ollama_endpoint_from_env(self, monkeypatch):
        monkeypatch.setattr(llm_mod, "_clients", {})
        monkeypatch.setenv("OLLAMA_ENDPOINT", "http://gpu-box:11434/v1")
        with patch("miditool.llm.AsyncOpenAI") as ctor:
            make_client("ollama")
        assert ctor.call_args.kwargs["base_url"] == "http://gpu-box:11434/v1"
        assert ctor.call_args.kwargs["api_key"] == "ollama"

    def test_clients_are_cached(self, monkeypatch):
        monkeypatch.setattr(llm_mod, "_clients", {})
        monkeypatch.setenv("MISTRAL_API_KEY", "k")
        with patch("miditool.llm.AsyncOpenAI") as ctor:
            first = make_client("mistral")
            second = make_client("mistral")
        assert first is second
        assert ctor.call_count == 1
        assert ctor.call_args.kwargs["base_url"] == "https://api.mistral.ai/v1"


class TestCheckConnection:
    @pytest.mark.asyncio
    async def test_success(self):
        with patch("miditool.llm.call_llm", AsyncMock(return_value="hello")):
            assert await check_llm_connection(MODEL) is True

    @pytest.mark.asyncio
    async def test_failure(self):
        failing = AsyncMock(side_effect=CollaboratorError("down"))
        with patch("miditool.llm.call_llm", failing):
            assert await check_llm_connection(MODEL) is False
