"""Chat-completion providers the agents talk to.

Every agent call goes through an ``LLMAdapter``: a system prompt, a user
prompt and the agent's model settings in, an ``LLMCompletion`` out. Network
failures surface as ``LLMError`` so the executor can retry them.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from typing import Protocol
from typing import runtime_checkable
from urllib.error import HTTPError
from urllib.error import URLError
from urllib.request import Request
from urllib.request import urlopen

from contextforge.config import LLMConfig
from contextforge.errors import ConfigurationError
from contextforge.errors import LLMError

_ERROR_DETAIL_CHARS = 200


@dataclass(frozen=True)
class LLMCompletion:
    text: str
    tokens_used: int = 0


@runtime_checkable
class LLMAdapter(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> LLMCompletion: ...


class NoopLLMAdapter:
    """Offline adapter: answers with the start of the user prompt."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> LLMCompletion:
        del system_prompt, model, temperature, max_tokens
        return LLMCompletion(text="[noop] " + user_prompt[:200])


class OpenAICompatibleLLMAdapter:
    """Adapter for any endpoint speaking the ``/chat/completions`` dialect.

    ``urllib`` is blocking, so each call runs in a worker thread.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._endpoint = base_url.rstrip("/") + "/chat/completions"
        self._timeout_seconds = timeout_seconds

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> LLMCompletion:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        return await asyncio.to_thread(self._complete_sync, payload)

    def _complete_sync(self, payload: dict[str, Any]) -> LLMCompletion:
        return parse_chat_completion(self._post(payload))

    def _post(self, payload: dict[str, Any]) -> str:
        request = Request(
            self._endpoint,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": "Bearer " + self._api_key,
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=self._timeout_seconds) as response:
                return response.read().decode("utf-8")
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")
            raise LLMError(
                f"{self._endpoint} answered {exc.code}: {body[:_ERROR_DETAIL_CHARS]}"
            ) from exc
        except URLError as exc:
            raise LLMError(f"cannot reach {self._endpoint}: {exc.reason}") from exc
        except OSError as exc:
            raise LLMError(f"connection to {self._endpoint} broke: {exc}") from exc


def parse_chat_completion(raw: str) -> LLMCompletion:
    """Read the first choice's text and ``usage.total_tokens`` (0 if absent)."""
    try:
        body = json.loads(raw)
        text = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise LLMError("completion body is missing choices[0].message.content") from exc
    if not isinstance(text, str):
        raise LLMError(f"completion content must be a string, got {type(text).__name__}")

    tokens = (body.get("usage") or {}).get("total_tokens")
    return LLMCompletion(text=text, tokens_used=tokens if isinstance(tokens, int) else 0)


def _openai(config: LLMConfig) -> LLMAdapter:
    if not config.api_key:
        raise ConfigurationError("api_key is required for the openai provider")
    return OpenAICompatibleLLMAdapter(
        api_key=config.api_key,
        base_url=config.base_url,
        timeout_seconds=config.timeout_seconds,
    )


def _noop(config: LLMConfig) -> LLMAdapter:
    return NoopLLMAdapter()


_PROVIDERS: dict[str, Callable[[LLMConfig], LLMAdapter]] = {
    "openai": _openai,
    "noop": _noop,
}


def build_llm_adapter(config: LLMConfig) -> LLMAdapter:
    """Adapter for ``config.provider`` (case and surrounding spaces ignored)."""
    factory = _PROVIDERS.get(config.provider.strip().lower())
    if factory is None:
        raise ConfigurationError(
            f"Unsupported LLMConfig.provider {config.provider!r}; "
            f"choose one of {', '.join(sorted(_PROVIDERS))}"
        )
    return factory(config)
