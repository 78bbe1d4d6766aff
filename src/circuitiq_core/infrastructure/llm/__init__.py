"""
Inference layer

The gateway is the only entry point used by the core engines; providers are
selected through the registry by configuration.
"""

from .gateway import InferenceGateway, get_gateway, reset_gateway
from .providers import InferenceRequest, LLMResponse, PromptMessage, ResponseShape

__all__ = [
    "InferenceGateway",
    "get_gateway",
    "reset_gateway",
    "InferenceRequest",
    "LLMResponse",
    "PromptMessage",
    "ResponseShape",
]
