"""Unit tests for concrete LLM adapters and provider factory."""

from __future__ import annotations

import json

import pytest

from contextforge.agents.llm import build_llm_adapter
from contextforge.agents.llm import LLMAdapter
from contextforge.agents.llm import LLMCompletion
from contextforge.agents.llm import NoopLLMAdapter
from contextforge.agents.llm import OpenAICompatibleLLMAdapter
from contextforge.agents.llm import parse_chat_completion
from contextforge.config import LLMConfig
from contextforge.errors import ConfigurationError
from contextforge.errors import LLMError
from contextforge.errors import TransientError


class TestBuildLLMAdapter:
    def test_openai_provider_requires_api_key(self) -> None:
        with pytest.raises(ConfigurationError, match="api_key is required"):
            build_llm_adapter(LLMConfig(provider="openai", api_key=None))

    def test_openai_provider_with_key(self) -> None:
        adapter = build_llm_adapter(LLMConfig(provider="openai", api_key="sk-test"))
        assert isinstance(adapter, OpenAICompatibleLLMAdapter)

    def test_noop_provider_is_supported(self) -> None:
        adapter = build_llm_adapter(LLMConfig(provider=" NOOP "))
        assert isinstance(adapter, NoopLLMAdapter)
        assert isinstance(adapter, LLMAdapter)

    def test_unsupported_provider_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unsupported LLMConfig.provider"):
            build_llm_adapter(LLMConfig(provider="anthropic"))


class TestNoopLLMAdapter:
    async def test_noop_echoes_prompt(self) -> None:
        completion = await NoopLLMAdapter().complete("system", "hello", model="m")
        assert completion == LLMCompletion(text="[noop] hello", tokens_used=0)


class TestParseChatCompletion:
    def test_reads_content_and_usage(self) -> None:
        raw = json.dumps(
            {
                "choices": [{"message": {"content": "answer"}}],
                "usage": {"total_tokens": 42},
            }
        )
        assert parse_chat_completion(raw) == LLMCompletion(text="answer", tokens_used=42)

    def test_missing_usage_defaults_to_zero(self) -> None:
        raw = json.dumps({"choices": [{"message": {"content": "answer"}}]})
        assert parse_chat_completion(raw).tokens_used == 0

    def test_missing_choices_raises(self) -> None:
        with pytest.raises(LLMError, match="missing choices"):
            parse_chat_completion(json.dumps({"choices": []}))

    def test_non_string_content_raises(self) -> None:
        raw = json.dumps({"choices": [{"message": {"content": ["a"]}}]})
        with pytest.raises(LLMError, match="must be a string"):
            parse_chat_completion(raw)

    def test_llm_errors_are_transient(self) -> None:
        assert issubclass(LLMError, TransientError)


class TestOpenAICompatibleAdapter:
    async def test_complete_uses_sync_path_via_thread(self, monkeypatch) -> None:
        adapter = OpenAICompatibleLLMAdapter(api_key="test")
        seen: dict = {}

        def _fake_sync(payload: dict) -> LLMCompletion:
            seen.update(payload)
            return LLMCompletion(text="ok", tokens_used=3)

        monkeypatch.setattr(adapter, "_complete_sync", _fake_sync)

        result = await adapter.complete(
            "be brief", "hello", model="gpt-4o", temperature=0.3, max_tokens=77
        )
        assert result.text == "ok"
        assert seen["model"] == "gpt-4o"
        assert seen["temperature"] == 0.3
        assert seen["max_tokens"] == 77
        assert seen["messages"] == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hello"},
        ]
