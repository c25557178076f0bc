"""Together AI adapter (OpenAI-compatible chat completions)."""

from __future__ import annotations

from fieldsales_ai.adapters.outbound.llm.base import ChatCompletionsAdapter
from fieldsales_ai.domain.enums import Provider


class TogetherAdapter(ChatCompletionsAdapter):
    provider = Provider.TOGETHER
