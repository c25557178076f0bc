"""Dependency injection container — wires adapters to ports.

Service objects are built once per application by ``build_services`` and
stored on ``app.state.services``.  FastAPI's ``Depends()`` getters below hand
them to route handlers; tests swap in fakes by passing their own container
to ``create_app``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache, partial

import httpx
import structlog
from fastapi import Request

from fieldsales_ai.adapters.outbound.llm import build_vendor_adapters
from fieldsales_ai.adapters.outbound.storage import build_store
from fieldsales_ai.application.queries import OrchestrationQueries
from fieldsales_ai.config import Settings, get_settings
from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.ports.outbound import KeyValueStorePort, VendorAdapterPort
from fieldsales_ai.shared.providers.cost_ledger import CostLedger
from fieldsales_ai.shared.providers.health import HealthMonitor
from fieldsales_ai.shared.providers.orchestrator import ProviderOrchestrator
from fieldsales_ai.shared.providers.registry import DEFAULT_PROVIDER_SPECS, ProviderRegistry
from fieldsales_ai.shared.providers.router import ProviderRouter
from fieldsales_ai.shared.providers.scheduler import PeriodicTask
from fieldsales_ai.shared.providers.types import BudgetConfig, utcnow

logger = structlog.get_logger(__name__)

MAINTENANCE_INTERVAL_S = 24 * 60 * 60


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


# ── Background jobs ──────────────────────────────────────────
async def run_daily_maintenance(ledger: CostLedger) -> int:
    """Prune ledger entries past the retention window."""
    removed = await ledger.prune()
    logger.info("daily_maintenance_completed", pruned_entries=removed)
    return removed


# ── Container ────────────────────────────────────────────────
@dataclass
class ServiceContainer:
    settings: Settings
    registry: ProviderRegistry
    store: KeyValueStorePort
    adapters: dict[Provider, VendorAdapterPort]
    monitor: HealthMonitor
    ledger: CostLedger
    router: ProviderRouter
    orchestrator: ProviderOrchestrator
    queries: OrchestrationQueries
    maintenance: PeriodicTask
    http_client: httpx.AsyncClient | None = None
    started: bool = field(default=False, init=False)

    async def startup(self) -> None:
        await self.ledger.load()
        await self.monitor.load()
        if self.settings.enable_background_tasks:
            self.monitor.start_monitoring(self.settings.health_check_interval_minutes)
            self.maintenance.start()
        self.started = True
        logger.info(
            "services_started",
            providers=[p.value for p in self.registry.providers],
            configured=[p.value for p in self.registry.configured_providers],
            background_tasks=self.settings.enable_background_tasks,
        )

    async def shutdown(self) -> None:
        await self.monitor.stop_monitoring()
        await self.maintenance.stop()
        for adapter in self.adapters.values():
            await adapter.close()
        if self.http_client is not None:
            await self.http_client.aclose()
        await self.store.close()
        self.started = False
        logger.info("services_stopped")


def build_services(
    settings: Settings | None = None,
    *,
    store: KeyValueStorePort | None = None,
    adapters: Mapping[Provider, VendorAdapterPort] | None = None,
    clock: Callable[[], datetime] = utcnow,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ServiceContainer:
    """Construct every service object from settings.

    ``store`` and ``adapters`` override the configured backends; when
    ``adapters`` is given, only those providers count as credentialed.
    """
    s = settings or get_cached_settings()

    http_client: httpx.AsyncClient | None = None
    if adapters is None:
        http_client = httpx.AsyncClient(timeout=s.provider_timeout_seconds)
        adapters = build_vendor_adapters(s, http_client)
    adapters = dict(adapters)

    registry = ProviderRegistry(DEFAULT_PROVIDER_SPECS, configured=adapters.keys())
    store = store or build_store(s)
    monitor = HealthMonitor(
        registry,
        adapters,
        store=store,
        probe_timeout_s=s.probe_timeout_seconds,
        default_interval_minutes=s.health_check_interval_minutes,
        clock=clock,
        sleep=sleep,
    )
    ledger = CostLedger(
        registry,
        store=store,
        budget=BudgetConfig(
            daily_limit=s.budget_daily_limit,
            monthly_limit=s.budget_monthly_limit,
            warning_threshold=s.budget_warning_threshold,
            critical_threshold=s.budget_critical_threshold,
        ),
        clock=clock,
    )
    router = ProviderRouter(registry, clock=clock)
    orchestrator = ProviderOrchestrator(
        registry,
        router,
        monitor,
        ledger,
        adapters,
        timeout_s=s.provider_timeout_seconds,
    )
    container = ServiceContainer(
        settings=s,
        registry=registry,
        store=store,
        adapters=adapters,
        monitor=monitor,
        ledger=ledger,
        router=router,
        orchestrator=orchestrator,
        queries=OrchestrationQueries(monitor, ledger, clock=clock),
        maintenance=PeriodicTask(
            "daily-maintenance",
            MAINTENANCE_INTERVAL_S,
            partial(run_daily_maintenance, ledger),
            run_immediately=True,
            sleep=sleep,
        ),
        http_client=http_client,
    )
    return container


# ── Request-scoped getters ───────────────────────────────────
def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services  # type: ignore[no-any-return]


def get_orchestrator(request: Request) -> ProviderOrchestrator:
    return get_services(request).orchestrator


def get_monitor(request: Request) -> HealthMonitor:
    return get_services(request).monitor


def get_ledger(request: Request) -> CostLedger:
    return get_services(request).ledger


def get_router(request: Request) -> ProviderRouter:
    return get_services(request).router


def get_queries(request: Request) -> OrchestrationQueries:
    return get_services(request).queries
