"""Tests for the service container wiring and its lifecycle."""

from __future__ import annotations

import pytest

from conftest import FakeAdapter, ManualSleeper, settle
from fieldsales_ai.adapters.outbound.storage import MemoryKeyValueStore
from fieldsales_ai.config import get_settings
from fieldsales_ai.dependencies import build_services, run_daily_maintenance
from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.shared.providers.cost_ledger import COST_LEDGER_KEY
from fieldsales_ai.shared.providers.types import TokenUsage


def make_services(sleeper=None, store=None, **overrides):
    settings = get_settings(**{"enable_background_tasks": False, **overrides})
    fakes = {p: FakeAdapter(p) for p in (Provider.GROQ, Provider.TOGETHER)}
    kwargs = {"sleep": sleeper} if sleeper is not None else {}
    services = build_services(settings, store=store or MemoryKeyValueStore(), adapters=fakes, **kwargs)
    return services, fakes


def test_registry_credentials_follow_adapters() -> None:
    services, _ = make_services()
    assert set(services.registry.providers) == set(Provider)
    assert set(services.registry.configured_providers) == {Provider.GROQ, Provider.TOGETHER}
    assert services.http_client is None


def test_budget_comes_from_settings() -> None:
    services, _ = make_services(budget_daily_limit=3.0, budget_monthly_limit=40.0)
    assert services.ledger.budget.daily_limit == 3.0
    assert services.ledger.budget.monthly_limit == 40.0


@pytest.mark.asyncio
async def test_startup_restores_persisted_state() -> None:
    services, _ = make_services()
    await services.ledger.track(Provider.TOGETHER, TokenUsage.of(10, 10))

    restarted, _ = make_services(store=services.store)
    await restarted.startup()

    assert restarted.started is True
    assert len(restarted.ledger.entries()) == 1
    await restarted.shutdown()


@pytest.mark.asyncio
async def test_startup_without_background_tasks() -> None:
    services, fakes = make_services()
    await services.startup()
    assert services.monitor.monitoring is False
    assert services.maintenance.running is False

    await services.shutdown()
    assert services.started is False
    assert all(f.closed for f in fakes.values())


@pytest.mark.asyncio
async def test_startup_starts_monitor_and_maintenance() -> None:
    sleeper = ManualSleeper()
    services, fakes = make_services(sleeper, enable_background_tasks=True, health_check_interval_minutes=1)

    await services.startup()
    await settle(lambda: sleeper.waiting == 2)

    assert services.monitor.monitoring is True
    assert services.maintenance.running is True
    assert sorted(sleeper.calls) == [60, 24 * 60 * 60]
    assert services.monitor.status(Provider.GROQ).is_healthy is True
    # No key, no probe call, marked unhealthy
    assert services.monitor.status(Provider.GEMINI).is_healthy is False

    await services.shutdown()
    assert services.monitor.monitoring is False
    assert services.maintenance.running is False


@pytest.mark.asyncio
async def test_daily_maintenance_prunes_ledger(ledger, clock) -> None:
    clock.advance(days=-45)
    await ledger.track(Provider.GROQ, TokenUsage.of(1, 1))
    clock.advance(days=45)
    await ledger.track(Provider.GROQ, TokenUsage.of(1, 1))

    assert await run_daily_maintenance(ledger) == 1
    assert len(ledger.entries()) == 1


@pytest.mark.asyncio
async def test_persisted_snapshot_written_on_track() -> None:
    services, _ = make_services()
    await services.ledger.track(Provider.GROQ, TokenUsage.of(5, 5))
    saved = await services.store.get(COST_LEDGER_KEY)
    assert len(saved["costs"]) == 1
