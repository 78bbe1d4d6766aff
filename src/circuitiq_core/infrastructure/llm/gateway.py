"""
Inference gateway.

Thin boundary in front of the provider registry: one request in, one
``LLMResponse`` out. The gateway owns no conversational state and performs
exactly one provider call per request; it does not cache, retry or fall back
to a secondary provider. Its only job beyond delegation is to bound every
call by a timeout and guarantee that whatever goes wrong leaves as either
``InferenceFailure`` or ``ConfigurationFailure``.
"""

import asyncio
import logging
from typing import Optional

from circuitiq_core.config import Settings, get_settings
from circuitiq_core.exceptions import CircuitIQError, InferenceFailure, InvalidArgumentError

from .providers import BaseLLMProvider, InferenceRequest, LLMResponse, ProviderRegistry, get_registry

logger = logging.getLogger(__name__)

# Slack between the provider's own HTTP timeout and the outer wait_for
_TIMEOUT_GRACE_SECONDS = 1.0


class InferenceGateway:
    """Single-provider, timeout-bounded model call"""

    def __init__(
        self,
        provider: Optional[BaseLLMProvider] = None,
        registry: Optional[ProviderRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._provider = provider
        self._registry = registry

    @property
    def provider(self) -> BaseLLMProvider:
        """Resolve the primary provider (raises ConfigurationFailure)"""
        if self._provider is None:
            registry = self._registry or get_registry(self.settings)
            self._provider = registry.get_primary()
        return self._provider

    async def complete(self, request: InferenceRequest) -> LLMResponse:
        """
        Perform one model call

        Args:
            request: Structured prompt

        Returns:
            LLMResponse with the raw text answer and call metadata

        Raises:
            InvalidArgumentError: Request carries no messages
            ConfigurationFailure: Provider missing or rejecting credentials
            InferenceFailure: Timeout, transport error or unusable answer
        """
        if not request.messages:
            raise InvalidArgumentError("Inference request needs at least one message")

        provider = self.provider
        timeout = request.timeout or self.settings.llm.request_timeout

        logger.debug(
            f"Inference call: provider={provider.provider_name}, "
            f"turns={len(request.messages)}, vision={request.is_vision}, "
            f"shape={request.shape.value}, timeout={timeout}s"
        )

        try:
            response = await asyncio.wait_for(
                provider.generate(request, timeout=timeout),
                timeout=timeout + _TIMEOUT_GRACE_SECONDS,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Inference call to {provider.provider_name} timed out after {timeout}s")
            raise InferenceFailure(
                f"Inference call timed out after {timeout}s",
                error_code="INFERENCE_TIMEOUT",
                context={"provider": provider.provider_name, "timeout": timeout},
            ) from e
        except CircuitIQError as e:
            logger.error(f"Inference call to {provider.provider_name} failed: {e.error_code}: {e.message}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error from {provider.provider_name}: {type(e).__name__}: {e}")
            raise InferenceFailure(
                f"Unexpected provider error: {e}",
                context={"provider": provider.provider_name},
            ) from e

        logger.info(
            f"Inference call served by {response.provider}/{response.model} "
            f"in {response.response_time_ms}ms ({response.tokens_used} tokens)"
        )
        return response

    def get_provider_status(self):
        """Get status of all providers"""
        return (self._registry or get_registry(self.settings)).get_provider_status()


# Global gateway instance
_gateway: Optional[InferenceGateway] = None


def get_gateway() -> InferenceGateway:
    """Get the global inference gateway instance"""
    global _gateway
    if _gateway is None:
        _gateway = InferenceGateway()
    return _gateway


def reset_gateway():
    """Reset the global gateway (mainly for testing)"""
    global _gateway
    _gateway = None
