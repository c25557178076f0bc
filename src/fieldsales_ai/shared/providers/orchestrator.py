"""Provider orchestrator — the single entry-point for outgoing AI requests.

Composes the router, health monitor and cost ledger:

    route → dispatch (with timeout) → report health → track cost → bump usage

One attempt per call.  A failed dispatch is reported to the health monitor
*before* the error is re-raised, so the next routing decision already sees
the provider as unavailable.  The orchestrator owns no state of its own.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.domain.exceptions import (
    CredentialMissingError,
    ValidationError,
    VendorError,
    VendorTimeoutError,
)
from fieldsales_ai.shared.observability.metrics import AI_REQUEST_LATENCY, AI_REQUESTS_TOTAL
from fieldsales_ai.shared.providers.cost_ledger import CostLedger
from fieldsales_ai.shared.providers.health import HealthMonitor
from fieldsales_ai.shared.providers.registry import ProviderRegistry
from fieldsales_ai.shared.providers.router import ProviderRouter
from fieldsales_ai.shared.providers.types import (
    AIRequest,
    AIResponse,
    GenerationResult,
    Recommendation,
    RequestContext,
)

if TYPE_CHECKING:
    from fieldsales_ai.ports.outbound import VendorAdapterPort

logger = structlog.get_logger(__name__)

DEFAULT_CONTEXT = RequestContext()


class ProviderOrchestrator:
    """Routes a request to one vendor and records the outcome."""

    def __init__(
        self,
        registry: ProviderRegistry,
        router: ProviderRouter,
        monitor: HealthMonitor,
        ledger: CostLedger,
        adapters: Mapping[Provider, VendorAdapterPort],
        *,
        timeout_s: float = 60.0,
    ) -> None:
        self._registry = registry
        self._router = router
        self._monitor = monitor
        self._ledger = ledger
        self._adapters = dict(adapters)
        self._timeout = timeout_s

    async def send(self, request: AIRequest) -> AIResponse:
        """Dispatch ``request`` to the routed provider.

        Raises:
            ValidationError: empty message.
            CredentialMissingError: the routed provider has no adapter or key.
            VendorError: the vendor call failed (health already updated).
        """
        if not request.message or not request.message.strip():
            raise ValidationError("message must not be empty")

        context = request.context or DEFAULT_CONTEXT
        provider = self._router.select(context, self._monitor.snapshot())
        log = logger.bind(provider=provider.value, request_type=context.type.value)

        adapter = self._adapters.get(provider)
        if adapter is None or not self._registry.has_credential(provider):
            error = CredentialMissingError(provider.value)
            self._monitor.report(provider, available=False, error_rate=1.0, error=error.message)
            AI_REQUESTS_TOTAL.labels(provider=provider.value, status="credential_missing").inc()
            log.warning("ai_request_skipped", reason="credential_missing")
            raise error

        start = time.perf_counter()
        try:
            result = await self._dispatch(provider, adapter, request)
        except VendorError as exc:
            self._record_failure(provider, exc.message, exc.kind.value)
            log.warning("ai_request_failed", error=exc.message, kind=exc.kind.value)
            raise
        except Exception as exc:
            self._record_failure(provider, str(exc) or type(exc).__name__, "unexpected")
            log.exception("ai_request_failed_unexpected")
            raise

        latency_ms = (time.perf_counter() - start) * 1000
        self._monitor.report(provider, available=True, latency_ms=latency_ms, error_rate=0.0)
        entry = await self._ledger.track(provider, result.usage, context.type.value)
        if self._registry.get(provider).quota_limited:
            self._router.record_dispatch(provider, result.usage.total_tokens)

        AI_REQUESTS_TOTAL.labels(provider=provider.value, status="success").inc()
        AI_REQUEST_LATENCY.labels(provider=provider.value).observe(latency_ms / 1000)
        log.info(
            "ai_request_completed",
            latency_ms=round(latency_ms, 1),
            total_tokens=result.usage.total_tokens,
            cost_usd=round(entry.cost, 6),
        )
        return AIResponse(
            content=result.content,
            provider=provider,
            usage=result.usage,
            cost=entry.cost,
            latency_ms=latency_ms,
        )

    async def _dispatch(
        self, provider: Provider, adapter: VendorAdapterPort, request: AIRequest
    ) -> GenerationResult:
        try:
            return await asyncio.wait_for(
                adapter.generate(request.message, request.options),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            raise VendorTimeoutError(provider.value, self._timeout) from None

    def _record_failure(self, provider: Provider, error: str, status: str) -> None:
        self._monitor.report(provider, available=False, error_rate=1.0, error=error)
        AI_REQUESTS_TOTAL.labels(provider=provider.value, status=status).inc()

    def recommend(self, context: RequestContext | None = None) -> Recommendation:
        """Routing decision without dispatching."""
        return self._router.recommend(context or DEFAULT_CONTEXT, self._monitor.snapshot())

    def status(self) -> dict[str, Any]:
        """Combined view: health summary, cost summary and budget alert."""
        health = self._monitor.summary()
        alert = self._ledger.check_budget_alerts()
        return {
            "health": {
                "total_providers": health.total_providers,
                "healthy_providers": health.healthy_providers,
                "unhealthy_providers": health.unhealthy_providers,
                "average_latency_ms": health.average_latency_ms,
                "average_uptime": health.average_uptime,
                "fastest_provider": health.fastest_provider.value if health.fastest_provider else None,
            },
            "costs": self._ledger.summary().to_dict(),
            "budget_alert": alert.to_dict() if alert else None,
        }
