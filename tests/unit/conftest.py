"""Unit test fixtures: scripted LLM adapter and a recording sleep."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field

import pytest

from contextforge.agents.llm import LLMCompletion
from contextforge.observability import reset_metrics

Responder = Callable[[str, str], str]


@dataclass
class LLMCall:
    system_prompt: str
    user_prompt: str
    model: str
    temperature: float
    max_tokens: int


@dataclass
class ScriptedLLM:
    """Fake adapter: *responder* maps ``(system_prompt, user_prompt)`` to text.

    A responder may raise to simulate provider failures. ``delay`` makes each
    call await before answering, which lets tests observe concurrency.
    """

    responder: Responder = lambda system, user: "Done. confidence: 0.8"
    delay: float = 0.0
    tokens_per_call: int = 10
    calls: list[LLMCall] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> LLMCompletion:
        self.calls.append(
            LLMCall(system_prompt, user_prompt, model, temperature, max_tokens)
        )
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            text = self.responder(system_prompt, user_prompt)
        finally:
            self.in_flight -= 1
        return LLMCompletion(text=text, tokens_used=self.tokens_per_call)


@pytest.fixture()
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture()
def sleeps() -> list[float]:
    """Delays passed to the fake sleep, in call order."""
    return []


@pytest.fixture()
def fake_sleep(sleeps: list[float]):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.fixture(autouse=True)
def clean_metrics():
    reset_metrics()
    yield
    reset_metrics()
