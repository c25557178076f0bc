"""Vendor adapters — one module per upstream LLM vendor.

All adapters share one ``httpx.AsyncClient``; the service container owns it
and closes it on shutdown.
"""

from __future__ import annotations

import httpx
import structlog

from fieldsales_ai.adapters.outbound.llm.base import (
    ChatCompletionsAdapter,
    HttpVendorAdapter,
    estimate_tokens,
)
from fieldsales_ai.adapters.outbound.llm.gemini import GeminiAdapter
from fieldsales_ai.adapters.outbound.llm.groq import GroqAdapter
from fieldsales_ai.adapters.outbound.llm.huggingface import HuggingFaceAdapter
from fieldsales_ai.adapters.outbound.llm.together import TogetherAdapter
from fieldsales_ai.config import Settings
from fieldsales_ai.domain.enums import Provider

logger = structlog.get_logger(__name__)

ADAPTER_CLASSES: dict[Provider, type[HttpVendorAdapter]] = {
    Provider.GEMINI: GeminiAdapter,
    Provider.GROQ: GroqAdapter,
    Provider.TOGETHER: TogetherAdapter,
    Provider.HUGGINGFACE: HuggingFaceAdapter,
}


def build_vendor_adapters(
    settings: Settings, client: httpx.AsyncClient
) -> dict[Provider, HttpVendorAdapter]:
    """Instantiate an adapter for every vendor that has an API key."""
    adapters: dict[Provider, HttpVendorAdapter] = {}
    for provider, cls in ADAPTER_CLASSES.items():
        api_key = settings.api_key_for(provider)
        if not api_key:
            logger.info("vendor_adapter_skipped", provider=provider.value, reason="no_api_key")
            continue
        adapters[provider] = cls(
            client,
            api_key,
            model=settings.model_for(provider),
            base_url=settings.base_url_for(provider),
        )
        logger.info("vendor_adapter_ready", provider=provider.value, model=settings.model_for(provider))
    return adapters


__all__ = [
    "ADAPTER_CLASSES",
    "ChatCompletionsAdapter",
    "GeminiAdapter",
    "GroqAdapter",
    "HttpVendorAdapter",
    "HuggingFaceAdapter",
    "TogetherAdapter",
    "build_vendor_adapters",
    "estimate_tokens",
]
