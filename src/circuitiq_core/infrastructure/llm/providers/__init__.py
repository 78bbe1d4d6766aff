"""
LLM Provider Package

This package contains the provider registry and the multimodal provider
implementations used by the inference gateway.
"""

from .base import (
    BaseLLMProvider,
    InferenceRequest,
    LLMResponse,
    PromptMessage,
    ProviderConfig,
    ResponseShape,
)
from .registry import PROVIDER_SCHEMA, ProviderRegistry, get_registry, reset_registry
from .openai_provider import OpenAIProvider
from .anthropic import AnthropicProvider
from .gemini import GeminiProvider

__all__ = [
    "BaseLLMProvider",
    "InferenceRequest",
    "LLMResponse",
    "PromptMessage",
    "ProviderConfig",
    "ResponseShape",
    "PROVIDER_SCHEMA",
    "ProviderRegistry",
    "get_registry",
    "reset_registry",
    "OpenAIProvider",
    "AnthropicProvider",
    "GeminiProvider",
]
