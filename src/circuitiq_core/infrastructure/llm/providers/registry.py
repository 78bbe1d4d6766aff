"""
Centralized Provider Registry for LLM providers.

This module provides a single source of truth for which providers exist, how
each is configured from the environment, and which one serves requests.
Exactly one provider (the configured primary) serves every request; there is
no fallback chain.
"""

import logging
import os
from typing import Dict, List, Optional

from circuitiq_core.config import Settings, get_settings
from circuitiq_core.exceptions import ConfigurationFailure

from .anthropic import AnthropicProvider
from .base import BaseLLMProvider, ProviderConfig
from .gemini import GeminiProvider
from .openai_provider import OpenAIProvider


# Data-driven provider schema - single source of truth
PROVIDER_SCHEMA = {
    "openai": {
        "api_key_var": "OPENAI_API_KEY",
        "model_var": "OPENAI_MODEL",
        "base_url_var": "OPENAI_API_BASE",
        "default_base_url": "https://api.openai.com/v1",
        "default_model": "gpt-4o",
        "provider_class": OpenAIProvider,
    },
    "openrouter": {
        "api_key_var": "OPENROUTER_API_KEY",
        "model_var": "OPENROUTER_MODEL",
        "base_url_var": "OPENROUTER_API_BASE",
        "default_base_url": "https://openrouter.ai/api/v1",
        "default_model": "openai/gpt-4o",
        "provider_class": OpenAIProvider,  # Compatible API
    },
    "anthropic": {
        "api_key_var": "ANTHROPIC_API_KEY",
        "model_var": "ANTHROPIC_MODEL",
        "base_url_var": "ANTHROPIC_API_BASE",
        "default_base_url": "https://api.anthropic.com/v1",
        "default_model": "claude-3-5-sonnet-latest",
        "provider_class": AnthropicProvider,
    },
    "gemini": {
        "api_key_var": "GEMINI_API_KEY",
        "model_var": "GEMINI_MODEL",
        "base_url_var": "GEMINI_API_BASE",
        "default_base_url": "https://generativelanguage.googleapis.com/v1beta",
        "default_model": "gemini-1.5-pro",
        "provider_class": GeminiProvider,
    },
}


class ProviderRegistry:
    """Central registry for managing LLM providers"""

    def __init__(self, settings: Optional[Settings] = None):
        self.logger = logging.getLogger(__name__)
        self.settings = settings or get_settings()
        self._providers: Dict[str, BaseLLMProvider] = {}
        self._initialized = False

    def _ensure_initialized(self):
        """Ensure providers are initialized before use"""
        if not self._initialized:
            self._initialize_from_settings()
            self._initialized = True

    def _initialize_from_settings(self):
        """Initialize every provider in the schema whose credentials are present"""
        for provider_name, schema in PROVIDER_SCHEMA.items():
            config = self._create_provider_config(provider_name, schema)
            if config is None:
                self.logger.debug(f"Provider '{provider_name}' skipped: {schema['api_key_var']} not set")
                continue
            provider = schema["provider_class"](config)
            if provider.is_available():
                self._providers[provider_name] = provider
                self.logger.info(f"Provider '{provider_name}' initialized (model={config.default_model})")
            else:
                self.logger.warning(f"Provider '{provider_name}' not available (missing config)")

        self.logger.info(
            f"Primary provider: {self.primary_name}, "
            f"available: {list(self._providers.keys()) or 'none'}"
        )

    def _create_provider_config(self, provider_name: str, schema: Dict) -> Optional[ProviderConfig]:
        """Create provider configuration from schema and environment variables"""
        api_key = os.getenv(schema["api_key_var"])
        if not api_key:
            return None

        model = os.getenv(schema["model_var"]) or schema["default_model"]
        base_url = os.getenv(schema["base_url_var"]) or schema["default_base_url"]

        return ProviderConfig(
            name=provider_name,
            api_key=api_key,
            base_url=base_url,
            models=[model],
            timeout=self.settings.llm.request_timeout,
        )

    @property
    def primary_name(self) -> str:
        return self.settings.llm.provider

    def get_provider(self, name: str) -> Optional[BaseLLMProvider]:
        """Get a specific provider by name"""
        self._ensure_initialized()
        return self._providers.get(name)

    def get_primary(self) -> BaseLLMProvider:
        """
        The provider that serves every request

        Raises:
            ConfigurationFailure: Unknown provider name or missing credentials
        """
        self._ensure_initialized()
        name = self.primary_name
        if name not in PROVIDER_SCHEMA:
            raise ConfigurationFailure(
                f"Unknown inference provider '{name}'. Valid options: {get_valid_provider_names()}",
                context={"provider": name},
            )
        provider = self._providers.get(name)
        if provider is None:
            raise ConfigurationFailure(
                f"Inference provider '{name}' is not configured: "
                f"set {PROVIDER_SCHEMA[name]['api_key_var']}",
                context={"provider": name},
            )
        return provider

    def get_available_providers(self) -> List[str]:
        """Get list of available provider names"""
        self._ensure_initialized()
        return list(self._providers.keys())

    def get_provider_status(self) -> Dict[str, Dict[str, object]]:
        """Get status information for all providers"""
        self._ensure_initialized()
        return {
            name: {
                "available": name in self._providers,
                "models": self._providers[name].get_supported_models() if name in self._providers else [],
                "primary": name == self.primary_name,
            }
            for name in PROVIDER_SCHEMA
        }


# Global registry instance
_registry: Optional[ProviderRegistry] = None


def get_registry(settings: Optional[Settings] = None) -> ProviderRegistry:
    """Get the global provider registry instance"""
    global _registry
    if _registry is None:
        _registry = ProviderRegistry(settings=settings)
    return _registry


def reset_registry():
    """Reset the global registry (mainly for testing)"""
    global _registry
    _registry = None


def get_valid_provider_names() -> List[str]:
    """Get list of valid provider names for CIRCUITIQ_LLM_PROVIDER"""
    return list(PROVIDER_SCHEMA.keys())
