"""Shared fixtures."""

from typing import List, Union

import pytest

from circuitiq_core.config import LLMSettings, reset_settings
from circuitiq_core.infrastructure.llm import InferenceRequest, LLMResponse
from circuitiq_core.infrastructure.llm.providers import reset_registry


class StubGateway:
    """Gateway double that answers from a script and counts calls.

    Each scripted item is either the text the model "answers" or an
    exception to raise. When the script runs out, the last answer repeats.
    """

    def __init__(self, *script: Union[str, Exception]):
        self.script: List[Union[str, Exception]] = list(script)
        self.requests: List[InferenceRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    @property
    def last_request(self) -> InferenceRequest:
        return self.requests[-1]

    async def complete(self, request: InferenceRequest) -> LLMResponse:
        self.requests.append(request)
        item = self.script.pop(0) if len(self.script) > 1 else (self.script[0] if self.script else "")
        if isinstance(item, Exception):
            raise item
        return LLMResponse(
            content=item,
            provider="stub",
            model="stub-model",
            tokens_used=len(item.split()),
            response_time_ms=1,
        )


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Fresh settings and provider registry, no provider keys from the host"""
    for var in ("OPENAI_API_KEY", "OPENROUTER_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    reset_registry()
    yield
    reset_settings()
    reset_registry()


@pytest.fixture
def llm_settings():
    return LLMSettings()


@pytest.fixture
def stub_gateway():
    return StubGateway("Check the ground strap at G101.")
