"""Shared httpx plumbing for vendor adapters.

Each vendor call is a single POST with no retry logic; failover and health
bookkeeping belong to the orchestrator.  Transport and HTTP failures are
normalised into the ``VendorError`` family here so the core never sees an
httpx exception.
"""

from __future__ import annotations

import math
from abc import abstractmethod
from typing import Any

import httpx
import structlog

from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.domain.exceptions import (
    VendorAuthError,
    VendorInvalidResponseError,
    VendorRateLimitedError,
    VendorTransientError,
)
from fieldsales_ai.ports.outbound import VendorAdapterPort
from fieldsales_ai.shared.providers.types import GenerateOptions, GenerationResult, TokenUsage

logger = structlog.get_logger(__name__)


def estimate_tokens(text: str) -> int:
    """Rough token count (~4 characters per token) for vendors that report none."""
    return math.ceil(len(text) / 4)


def estimated_usage(prompt: str, completion: str) -> TokenUsage:
    return TokenUsage.of(estimate_tokens(prompt), estimate_tokens(completion))


class HttpVendorAdapter(VendorAdapterPort):
    """Base for adapters that talk JSON over HTTP."""

    provider: Provider

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        *,
        model: str,
        base_url: str,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")

    @property
    def model(self) -> str:
        return self._model

    async def generate(
        self, prompt: str, options: GenerateOptions | None = None
    ) -> GenerationResult:
        options = options or GenerateOptions()
        data = await self._post_json(
            self._endpoint(),
            json=self._request_body(prompt, options),
            headers=self._headers(),
            params=self._params(),
        )
        try:
            return self._parse(prompt, data)
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise VendorInvalidResponseError(
                self.provider.value, f"Unexpected response shape: {exc!r}"
            ) from exc

    # ── Vendor-specific hooks ────────────────────────────────
    @abstractmethod
    def _endpoint(self) -> str: ...

    @abstractmethod
    def _request_body(self, prompt: str, options: GenerateOptions) -> dict[str, Any]: ...

    @abstractmethod
    def _parse(self, prompt: str, data: Any) -> GenerationResult: ...

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _params(self) -> dict[str, str] | None:
        return None

    # ── HTTP ─────────────────────────────────────────────────
    async def _post_json(
        self,
        url: str,
        *,
        json: dict[str, Any],
        headers: dict[str, str],
        params: dict[str, str] | None = None,
    ) -> Any:
        name = self.provider.value
        try:
            response = await self._client.post(url, json=json, headers=headers, params=params)
        except httpx.TimeoutException as exc:
            raise VendorTransientError(name, f"Timeout: {type(exc).__name__}") from exc
        except httpx.HTTPError as exc:
            raise VendorTransientError(name, f"{type(exc).__name__}: {exc}") from exc

        self._raise_for_status(response)
        try:
            return response.json()
        except ValueError as exc:
            raise VendorInvalidResponseError(name, "Response body is not valid JSON") from exc

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        name = self.provider.value
        status = response.status_code
        detail = response.text[:200]
        logger.debug("vendor_http_error", provider=name, status_code=status, detail=detail)
        if status in (401, 403):
            raise VendorAuthError(name, f"HTTP {status}: credential rejected")
        if status == 429:
            raise VendorRateLimitedError(
                name,
                f"HTTP 429: {detail}" if detail else "HTTP 429",
                retry_after=_retry_after(response),
            )
        raise VendorTransientError(name, f"HTTP {status}: {detail}")

    async def close(self) -> None:
        # The client is shared across adapters and closed by its owner.
        return None


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class ChatCompletionsAdapter(HttpVendorAdapter):
    """OpenAI-compatible ``/chat/completions`` endpoint."""

    def _endpoint(self) -> str:
        return f"{self._base_url}/chat/completions"

    def _request_body(self, prompt: str, options: GenerateOptions) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self._model,
            "temperature": options.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if options.max_tokens is not None:
            body["max_tokens"] = options.max_tokens
        return body

    def _parse(self, prompt: str, data: Any) -> GenerationResult:
        content = data["choices"][0]["message"].get("content") or ""
        usage = data.get("usage")
        if not usage:
            return GenerationResult(content, estimated_usage(prompt, content))
        return GenerationResult(
            content,
            TokenUsage.of(
                int(usage.get("prompt_tokens") or 0),
                int(usage.get("completion_tokens") or 0),
                int(usage.get("total_tokens") or 0),
            ),
        )
