"""
Google Gemini provider implementation.

This module implements the Google Gemini provider with multi-modal
capabilities for text and diagram/photo inputs.
"""

from typing import Any, Dict, List, Optional

from circuitiq_core.exceptions import InferenceFailure

from .base import BaseLLMProvider, InferenceRequest, LLMResponse, split_data_url

# Default safety settings for troubleshooting use case
DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
]


class GeminiProvider(BaseLLMProvider):
    """Google Gemini LLM provider implementation"""

    @property
    def provider_name(self) -> str:
        return "gemini"

    @staticmethod
    def _image_part(image_ref: str) -> Dict[str, Any]:
        inline = split_data_url(image_ref)
        if inline:
            mime_type, data = inline
            return {"inlineData": {"mimeType": mime_type, "data": data}}
        return {"fileData": {"mimeType": "image/*", "fileUri": image_ref}}

    def _build_contents(self, request: InferenceRequest):
        """Split the request into (system instruction, contents)"""
        system_parts: List[str] = [request.system] if request.system else []
        contents: List[Dict[str, Any]] = []

        image_index = request.last_user_index() if request.is_vision else -1
        for i, turn in enumerate(request.messages):
            if turn.role == "system":
                system_parts.append(turn.content)
                continue
            if i != image_index and not turn.content.strip():
                continue
            parts: List[Dict[str, Any]] = [{"text": turn.content}]
            if i == image_index:
                parts.append(self._image_part(request.image_ref))
            role = "model" if turn.role == "assistant" else "user"
            contents.append({"role": role, "parts": parts})

        return "\n\n".join(system_parts), contents

    async def generate(self, request: InferenceRequest, timeout: Optional[float] = None) -> LLMResponse:
        """Generate text using the Gemini generateContent API"""

        self._require_credentials()
        started = self._start_timing()

        selected_model = self.get_effective_model(request.model)

        generation_config: Dict[str, Any] = {
            "temperature": request.temperature,
            "maxOutputTokens": request.max_tokens,
        }
        if request.shape.is_json:
            generation_config["responseMimeType"] = "application/json"

        system, contents = self._build_contents(request)
        request_body: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
            "safetySettings": DEFAULT_SAFETY_SETTINGS,
        }
        if system:
            request_body["systemInstruction"] = {"parts": [{"text": system}]}

        # API key as query parameter (Gemini API format)
        response_data = await self._post_json(
            f"{self.config.base_url.rstrip('/')}/models/{selected_model}:generateContent",
            headers={"Content-Type": "application/json"},
            payload=request_body,
            timeout=timeout,
            params={"key": self.config.api_key},
        )

        candidates = response_data.get("candidates") or []
        if not candidates:
            block_reason = (response_data.get("promptFeedback") or {}).get("blockReason")
            raise InferenceFailure(
                f"Gemini API returned no candidates (blockReason={block_reason})",
                context={"provider": self.provider_name},
            )

        candidate = candidates[0]
        content = ""
        for part in (candidate.get("content") or {}).get("parts") or []:
            if "text" in part:
                content += part["text"]

        usage = response_data.get("usageMetadata") or {}

        return LLMResponse(
            content=content,
            provider=self.provider_name,
            model=selected_model,
            tokens_used=usage.get("totalTokenCount", 0),
            response_time_ms=self._get_response_time_ms(started),
            finish_reason=candidate.get("finishReason"),
        )
