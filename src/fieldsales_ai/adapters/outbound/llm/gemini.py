"""Google Gemini ``generateContent`` adapter."""

from __future__ import annotations

from typing import Any

from fieldsales_ai.adapters.outbound.llm.base import HttpVendorAdapter, estimated_usage
from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.shared.providers.types import GenerateOptions, GenerationResult, TokenUsage


class GeminiAdapter(HttpVendorAdapter):
    provider = Provider.GEMINI

    def _endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _params(self) -> dict[str, str]:
        return {"key": self._api_key}

    def _request_body(self, prompt: str, options: GenerateOptions) -> dict[str, Any]:
        config: dict[str, Any] = {"temperature": options.temperature}
        if options.max_tokens is not None:
            config["maxOutputTokens"] = options.max_tokens
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": config,
        }

    def _parse(self, prompt: str, data: Any) -> GenerationResult:
        parts = data["candidates"][0].get("content", {}).get("parts", [])
        content = "".join(part.get("text", "") for part in parts)

        # Older model versions omit usageMetadata
        meta = data.get("usageMetadata")
        if not meta:
            return GenerationResult(content, estimated_usage(prompt, content))
        return GenerationResult(
            content,
            TokenUsage.of(
                int(meta.get("promptTokenCount") or 0),
                int(meta.get("candidatesTokenCount") or 0),
                int(meta.get("totalTokenCount") or 0),
            ),
        )
