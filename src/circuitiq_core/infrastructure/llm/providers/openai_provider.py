"""
OpenAI provider implementation.

This module implements the OpenAI chat-completions provider. The same wire
format is served by OpenRouter, so the registry reuses this class for it.
"""

from typing import Any, Dict, List, Optional

from circuitiq_core.exceptions import InferenceFailure

from .base import BaseLLMProvider, InferenceRequest, LLMResponse, ResponseShape


class OpenAIProvider(BaseLLMProvider):
    """OpenAI LLM provider implementation"""

    @property
    def provider_name(self) -> str:
        return self.config.name or "openai"

    def _build_messages(self, request: InferenceRequest) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})

        image_index = request.last_user_index() if request.is_vision else -1
        for i, turn in enumerate(request.messages):
            if i == image_index:
                messages.append(
                    {
                        "role": turn.role,
                        "content": [
                            {"type": "text", "text": turn.content},
                            {"type": "image_url", "image_url": {"url": request.image_ref}},
                        ],
                    }
                )
            else:
                messages.append({"role": turn.role, "content": turn.content})
        return messages

    async def generate(self, request: InferenceRequest, timeout: Optional[float] = None) -> LLMResponse:
        """Generate response using the chat-completions API"""

        self._require_credentials()
        started = self._start_timing()

        effective_model = self.get_effective_model(request.model)

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

        payload: Dict[str, Any] = {
            "model": effective_model,
            "messages": self._build_messages(request),
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }

        # json_object mode only admits an object at the root
        if request.shape is ResponseShape.JSON_OBJECT:
            payload["response_format"] = {"type": "json_object"}

        data = await self._post_json(
            f"{self.config.base_url}/chat/completions",
            headers=headers,
            payload=payload,
            timeout=timeout,
        )

        choices = data.get("choices") or []
        if not choices:
            raise InferenceFailure(
                f"{self.provider_name} API returned no choices",
                context={"provider": self.provider_name},
            )

        message = choices[0].get("message") or {}
        content = message.get("content") or ""
        if isinstance(content, list):
            content = "".join(part.get("text", "") for part in content if isinstance(part, dict))

        usage = data.get("usage") or {}
        tokens_used = usage.get("total_tokens", 0)

        return LLMResponse(
            content=content,
            provider=self.provider_name,
            model=data.get("model") or effective_model,
            tokens_used=tokens_used,
            response_time_ms=self._get_response_time_ms(started),
            finish_reason=choices[0].get("finish_reason"),
        )
