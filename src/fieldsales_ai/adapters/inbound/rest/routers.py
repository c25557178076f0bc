"""Health, AI, Providers, Costs, Reports — REST routers."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import JSONResponse, Response

from fieldsales_ai.application.dtos import (
    BudgetAlertResponse,
    BudgetResponse,
    BudgetUpdateRequest,
    CostEntryResponse,
    CostEstimateResponse,
    CostSummaryResponse,
    HealthResponse,
    HealthStatusResponse,
    HealthSummaryResponse,
    ProviderBreakdownResponse,
    ProviderLimitsResponse,
    RecommendationResponse,
    RequestContextIn,
    SendRequest,
    SendResponse,
)
from fieldsales_ai.application.queries import OrchestrationQueries
from fieldsales_ai.dependencies import (
    ServiceContainer,
    get_ledger,
    get_monitor,
    get_orchestrator,
    get_queries,
    get_router,
    get_services,
)
from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.shared.providers.cost_ledger import CostLedger
from fieldsales_ai.shared.providers.health import HealthMonitor
from fieldsales_ai.shared.providers.orchestrator import ProviderOrchestrator
from fieldsales_ai.shared.providers.router import ProviderRouter
from fieldsales_ai.shared.providers.types import AIRequest, BudgetConfig, GenerateOptions


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(services: ServiceContainer = Depends(get_services)) -> JSONResponse:
    """Liveness plus storage and provider availability.

    ``degraded`` (503) when the store is unreachable or no provider is healthy.
    """
    store_ok = await services.store.health_check()
    summary = services.monitor.summary()
    providers_ok = summary.healthy_providers > 0
    overall = "ok" if store_ok and providers_ok else "degraded"

    body = HealthResponse(
        status=overall,
        environment=services.settings.app_env.value,
        services={
            "store": "connected" if store_ok else "disconnected",
            "providers": f"{summary.healthy_providers}/{summary.total_providers} healthy",
            "monitoring": "running" if services.monitor.monitoring else "stopped",
        },
    )
    return JSONResponse(content=body.model_dump(), status_code=200 if overall == "ok" else 503)


@health_router.get("/metrics")
async def prometheus_metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


@health_router.get("/status")
async def system_status(
    orchestrator: ProviderOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Health summary, cost summary and budget alert in one call."""
    return orchestrator.status()


# ═══════════════════════════════════════════════════════════════
#  AI
# ═══════════════════════════════════════════════════════════════
ai_router = APIRouter(prefix="/ai", tags=["AI"])


@ai_router.post("/send", response_model=SendResponse)
async def send_message(
    body: SendRequest,
    orchestrator: ProviderOrchestrator = Depends(get_orchestrator),
) -> SendResponse:
    request = AIRequest(
        message=body.message,
        context=body.context.to_context() if body.context else None,
        options=GenerateOptions(max_tokens=body.max_tokens, temperature=body.temperature),
    )
    response = await orchestrator.send(request)
    return SendResponse.from_response(response)


@ai_router.post("/route", response_model=RecommendationResponse)
async def recommend_route(
    body: RequestContextIn,
    orchestrator: ProviderOrchestrator = Depends(get_orchestrator),
) -> RecommendationResponse:
    """Which provider would serve this request, without dispatching it."""
    rec = orchestrator.recommend(body.to_context())
    return RecommendationResponse(
        provider=rec.provider,
        estimated_cost=rec.estimated_cost,
        reason=rec.reason,
    )


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
providers_router = APIRouter(prefix="/providers", tags=["Provider Health"])


@providers_router.get("/health", response_model=list[HealthStatusResponse])
async def provider_health(
    monitor: HealthMonitor = Depends(get_monitor),
) -> list[HealthStatusResponse]:
    return [HealthStatusResponse.from_status(s) for s in monitor.snapshot().values()]


@providers_router.get("/health/summary", response_model=HealthSummaryResponse)
async def provider_health_summary(
    queries: OrchestrationQueries = Depends(get_queries),
) -> HealthSummaryResponse:
    return HealthSummaryResponse.from_summary(queries.get_health_summary())


@providers_router.post("/check", response_model=list[HealthStatusResponse])
async def run_health_check(
    monitor: HealthMonitor = Depends(get_monitor),
) -> list[HealthStatusResponse]:
    """Probe every provider now."""
    snapshot = await monitor.check_all()
    return [HealthStatusResponse.from_status(s) for s in snapshot.values()]


@providers_router.get("/limits", response_model=list[ProviderLimitsResponse])
async def provider_limits(
    router: ProviderRouter = Depends(get_router),
) -> list[ProviderLimitsResponse]:
    return [ProviderLimitsResponse.from_limits(lim) for lim in router.limits_snapshot().values()]


@providers_router.post("/limits/reset")
async def reset_daily_usage(router: ProviderRouter = Depends(get_router)) -> dict[str, str]:
    """Admin: zero today's usage counters."""
    router.reset_daily_usage()
    return {"status": "reset"}


@providers_router.get("/fallback-order", response_model=list[Provider])
async def fallback_order(monitor: HealthMonitor = Depends(get_monitor)) -> list[Provider]:
    return monitor.fallback_order()


# ═══════════════════════════════════════════════════════════════
#  Costs & budget
# ═══════════════════════════════════════════════════════════════
costs_router = APIRouter(prefix="/costs", tags=["Costs"])


@costs_router.get("/summary", response_model=CostSummaryResponse)
async def cost_summary(
    queries: OrchestrationQueries = Depends(get_queries),
) -> CostSummaryResponse:
    return CostSummaryResponse(**queries.get_cost_summary().to_dict())


@costs_router.get("/entries", response_model=list[CostEntryResponse])
async def cost_entries(
    limit: int = Query(50, ge=1, le=1000),
    ledger: CostLedger = Depends(get_ledger),
) -> list[CostEntryResponse]:
    return [CostEntryResponse.from_entry(e) for e in ledger.recent_entries(limit)]


@costs_router.get("/providers/{provider}", response_model=ProviderBreakdownResponse)
async def provider_breakdown(
    provider: Provider,
    ledger: CostLedger = Depends(get_ledger),
) -> ProviderBreakdownResponse:
    b = ledger.provider_breakdown(provider)
    return ProviderBreakdownResponse(
        provider=provider,
        total_cost=b.total_cost,
        total_tokens=b.total_tokens,
        request_count=b.request_count,
        average_cost_per_request=b.average_cost_per_request,
        average_tokens_per_request=b.average_tokens_per_request,
    )


@costs_router.get("/estimate", response_model=CostEstimateResponse)
async def estimate_cost(
    provider: Provider,
    tokens: int = Query(1000, ge=0, le=10_000_000),
    ledger: CostLedger = Depends(get_ledger),
) -> CostEstimateResponse:
    est = ledger.estimate_cost(provider, tokens)
    return CostEstimateResponse(
        provider=provider,
        tokens=tokens,
        cost=est.cost,
        is_free=est.is_free,
        message=est.message,
    )


@costs_router.get("/budget", response_model=BudgetResponse)
async def get_budget(ledger: CostLedger = Depends(get_ledger)) -> BudgetResponse:
    return BudgetResponse.from_config(ledger.budget)


@costs_router.put("/budget", response_model=BudgetResponse)
async def update_budget(
    body: BudgetUpdateRequest,
    ledger: CostLedger = Depends(get_ledger),
) -> BudgetResponse:
    """Merge the given fields into the current budget; the result is validated as a whole."""
    merged = {**ledger.budget.to_dict(), **body.model_dump(exclude_none=True)}
    config = await ledger.update_budget(BudgetConfig(**merged))
    return BudgetResponse.from_config(config)


@costs_router.get("/alert", response_model=BudgetAlertResponse | None)
async def budget_alert(
    queries: OrchestrationQueries = Depends(get_queries),
) -> BudgetAlertResponse | None:
    alert = queries.check_budget()
    return BudgetAlertResponse.from_alert(alert) if alert else None


# ═══════════════════════════════════════════════════════════════
#  Reports
# ═══════════════════════════════════════════════════════════════
reports_router = APIRouter(prefix="/reports", tags=["Reports"])


@reports_router.get("/export")
async def export_report(
    queries: OrchestrationQueries = Depends(get_queries),
) -> dict[str, Any]:
    return queries.export_report()
