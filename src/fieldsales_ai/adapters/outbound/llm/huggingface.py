"""HuggingFace Inference API text-generation adapter.

The endpoint reports no token counts, so usage is always estimated.
"""

from __future__ import annotations

from typing import Any

from fieldsales_ai.adapters.outbound.llm.base import HttpVendorAdapter, estimated_usage
from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.domain.exceptions import VendorInvalidResponseError
from fieldsales_ai.shared.providers.types import GenerateOptions, GenerationResult

DEFAULT_MAX_NEW_TOKENS = 512


class HuggingFaceAdapter(HttpVendorAdapter):
    provider = Provider.HUGGINGFACE

    def _endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}"

    def _request_body(self, prompt: str, options: GenerateOptions) -> dict[str, Any]:
        return {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": options.max_tokens or DEFAULT_MAX_NEW_TOKENS,
                "temperature": options.temperature,
                "return_full_text": False,
            },
        }

    def _parse(self, prompt: str, data: Any) -> GenerationResult:
        if isinstance(data, list):
            data = data[0]
        if not isinstance(data, dict) or "generated_text" not in data:
            raise VendorInvalidResponseError(self.provider.value, "Missing generated_text")
        content = str(data["generated_text"])
        return GenerationResult(content, estimated_usage(prompt, content))
