"""
Anthropic provider implementation.

This module implements the Anthropic Claude provider on the Messages API,
including image blocks for vision requests.
"""

from typing import Any, Dict, List, Optional

from circuitiq_core.exceptions import InferenceFailure

from .base import BaseLLMProvider, InferenceRequest, LLMResponse, split_data_url


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude LLM provider implementation"""

    api_version = "2023-06-01"

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @staticmethod
    def _image_block(image_ref: str) -> Dict[str, Any]:
        inline = split_data_url(image_ref)
        if inline:
            media_type, data = inline
            return {
                "type": "image",
                "source": {"type": "base64", "media_type": media_type, "data": data},
            }
        return {"type": "image", "source": {"type": "url", "url": image_ref}}

    def _build_messages(self, request: InferenceRequest):
        """Split the request into (system prompt, user/assistant turns)"""
        # The Messages API has no system role; history entries of that role
        # are folded into the system prompt in order.
        system_parts: List[str] = [request.system] if request.system else []
        messages: List[Dict[str, Any]] = []

        image_index = request.last_user_index() if request.is_vision else -1
        for i, turn in enumerate(request.messages):
            if turn.role == "system":
                system_parts.append(turn.content)
                continue
            # Empty text blocks are rejected by the API
            if i != image_index and not turn.content.strip():
                continue
            if i == image_index:
                content: Any = [
                    self._image_block(request.image_ref),
                    {"type": "text", "text": turn.content},
                ]
            else:
                content = turn.content
            messages.append({"role": turn.role, "content": content})

        return "\n\n".join(system_parts), messages

    async def generate(self, request: InferenceRequest, timeout: Optional[float] = None) -> LLMResponse:
        """Generate text using the Anthropic Messages API"""

        self._require_credentials()
        started = self._start_timing()

        selected_model = self.get_effective_model(request.model)

        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.config.api_key,
            "anthropic-version": self.api_version,
        }

        system, messages = self._build_messages(request)
        request_body: Dict[str, Any] = {
            "model": selected_model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": messages,
        }
        if system:
            request_body["system"] = system

        response_data = await self._post_json(
            f"{self.config.base_url.rstrip('/')}/messages",
            headers=headers,
            payload=request_body,
            timeout=timeout,
        )

        if "content" not in response_data:
            raise InferenceFailure(
                "Anthropic API returned no content blocks",
                context={"provider": self.provider_name},
            )

        # Anthropic returns content as a list of blocks
        content = ""
        for block in response_data.get("content") or []:
            if block.get("type") == "text":
                content += block.get("text", "")

        usage = response_data.get("usage") or {}
        tokens_used = usage.get("input_tokens", 0) + usage.get("output_tokens", 0)

        return LLMResponse(
            content=content,
            provider=self.provider_name,
            model=response_data.get("model") or selected_model,
            tokens_used=tokens_used,
            response_time_ms=self._get_response_time_ms(started),
            finish_reason=response_data.get("stop_reason"),
        )
