"""
Base provider interface for multimodal LLM providers.

This module defines the request/response types that cross the inference
boundary and the abstract base class every provider implements. Providers
translate an ``InferenceRequest`` into their own wire format, perform exactly
one HTTP call, and translate failures into the core error taxonomy:

- ConfigurationFailure: missing credentials, HTTP 401/403
- InferenceFailure: timeouts, connection errors, HTTP 429/5xx, unusable payloads
"""

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from circuitiq_core.exceptions import ConfigurationFailure, InferenceFailure

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


class ResponseShape(str, Enum):
    """What the caller expects the model to answer with"""

    TEXT = "text"
    JSON_OBJECT = "json_object"
    JSON_ARRAY = "json_array"

    @property
    def is_json(self) -> bool:
        return self is not ResponseShape.TEXT


@dataclass
class PromptMessage:
    """One conversational turn sent to the model"""

    role: str  # "user" | "assistant" | "system"
    content: str


@dataclass
class InferenceRequest:
    """Structured prompt for a single model call"""

    messages: List[PromptMessage]
    system: Optional[str] = None
    image_ref: Optional[str] = None  # attached to the final user turn
    shape: ResponseShape = ResponseShape.TEXT
    max_tokens: int = 1000
    temperature: float = 0.7
    timeout: Optional[float] = None
    model: Optional[str] = None

    @property
    def is_vision(self) -> bool:
        return bool(self.image_ref)

    @property
    def expect_json(self) -> bool:
        return self.shape.is_json

    def last_user_index(self) -> int:
        """Index of the turn the image is attached to (-1 if none)"""
        for i in range(len(self.messages) - 1, -1, -1):
            if self.messages[i].role == "user":
                return i
        return -1


@dataclass
class LLMResponse:
    """Response from LLM provider"""

    content: str
    provider: str
    model: str
    tokens_used: int
    response_time_ms: int
    finish_reason: Optional[str] = None


@dataclass
class ProviderConfig:
    """Configuration for an LLM provider"""

    name: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    models: List[str] = field(default_factory=list)
    timeout: float = 45.0
    default_model: Optional[str] = None

    def __post_init__(self):
        if self.default_model is None and self.models:
            self.default_model = self.models[0]


def split_data_url(image_ref: str) -> Optional[Tuple[str, str]]:
    """Split a ``data:<mime>;base64,<payload>`` reference into (mime, payload)"""
    match = _DATA_URL_RE.match(image_ref.strip())
    if not match:
        return None
    return match.group("mime"), match.group("data")


class BaseLLMProvider(ABC):
    """Abstract base class for all LLM providers"""

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the unique name of this provider"""
        pass

    @abstractmethod
    async def generate(self, request: InferenceRequest, timeout: Optional[float] = None) -> LLMResponse:
        """
        Perform one model call

        Args:
            request: Structured prompt
            timeout: Total timeout in seconds (default: provider config)

        Returns:
            LLMResponse with the raw text answer

        Raises:
            ConfigurationFailure: Provider rejected or lacks credentials
            InferenceFailure: Transient or malformed upstream response
        """
        pass

    def is_available(self) -> bool:
        """Check if the provider is properly configured"""
        return bool(self.config.api_key and self.config.base_url and self.config.models)

    def get_supported_models(self) -> List[str]:
        """Get list of models supported by this provider"""
        return self.config.models.copy()

    @staticmethod
    def _start_timing() -> float:
        """Start time of one call"""
        return time.time()

    @staticmethod
    def _get_response_time_ms(started: float) -> int:
        """Get response time in milliseconds"""
        return int((time.time() - started) * 1000)

    def get_effective_model(self, requested_model: Optional[str] = None) -> str:
        """Get the model to use, with fallback logic"""
        if requested_model and requested_model in self.config.models:
            return requested_model

        if self.config.default_model:
            return self.config.default_model

        if self.config.models:
            return self.config.models[0]

        raise ConfigurationFailure(
            f"No valid model available for provider {self.provider_name}",
            context={"provider": self.provider_name},
        )

    def _require_credentials(self):
        if not self.config.api_key:
            raise ConfigurationFailure(
                f"{self.provider_name} API key is not configured",
                context={"provider": self.provider_name},
            )

    def _raise_for_status(self, status: int, error_text: str):
        """Translate a non-200 HTTP status into the error taxonomy"""
        snippet = error_text[:500]
        context = {"provider": self.provider_name, "status": status}
        if status in (401, 403):
            raise ConfigurationFailure(
                f"{self.provider_name} rejected credentials ({status}): {snippet}",
                context=context,
            )
        if status == 429:
            raise InferenceFailure(
                f"{self.provider_name} rate limit or quota exceeded: {snippet}",
                error_code="INFERENCE_RATE_LIMITED",
                context=context,
            )
        if status == 404:
            raise ConfigurationFailure(
                f"{self.provider_name} endpoint or model not found: {snippet}",
                context=context,
            )
        raise InferenceFailure(
            f"{self.provider_name} API error {status}: {snippet}",
            context=context,
        )

    async def _post_json(
        self,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        timeout: Optional[float] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded JSON answer"""
        total = timeout if timeout is not None else self.config.timeout
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    headers=headers,
                    params=params,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=total),
                ) as response:

                    if response.status != 200:
                        error_text = await response.text()
                        self._raise_for_status(response.status, error_text)

                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise InferenceFailure(
                            f"{self.provider_name} returned a non-JSON payload: {e}",
                            context={"provider": self.provider_name},
                        ) from e

        except asyncio.TimeoutError as e:
            raise InferenceFailure(
                f"{self.provider_name} request timed out after {total}s",
                error_code="INFERENCE_TIMEOUT",
                context={"provider": self.provider_name, "timeout": total},
            ) from e
        except aiohttp.ClientError as e:
            raise InferenceFailure(
                f"{self.provider_name} connection error: {e}",
                context={"provider": self.provider_name},
            ) from e
