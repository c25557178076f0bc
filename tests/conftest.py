"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from fieldsales_ai.adapters.outbound.storage import MemoryKeyValueStore
from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.ports.outbound import VendorAdapterPort
from fieldsales_ai.shared.providers.cost_ledger import CostLedger
from fieldsales_ai.shared.providers.health import HealthMonitor
from fieldsales_ai.shared.providers.orchestrator import ProviderOrchestrator
from fieldsales_ai.shared.providers.registry import ProviderRegistry
from fieldsales_ai.shared.providers.router import ProviderRouter
from fieldsales_ai.shared.providers.types import (
    GenerateOptions,
    GenerationResult,
    HealthStatus,
    TokenUsage,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


# ═══════════════════════════════════════════════════════════════
#  Test doubles
# ═══════════════════════════════════════════════════════════════
class FixedClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeAdapter(VendorAdapterPort):
    """Scriptable vendor: returns ``content`` or raises ``error``."""

    def __init__(
        self,
        provider: Provider,
        *,
        content: str = "hello from vendor",
        usage: TokenUsage | None = None,
        error: BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        self.provider = provider
        self.content = content
        self.usage = usage or TokenUsage.of(10, 20)
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, GenerateOptions | None]] = []
        self.closed = False

    async def generate(
        self, prompt: str, options: GenerateOptions | None = None
    ) -> GenerationResult:
        self.calls.append((prompt, options))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return GenerationResult(self.content, self.usage)

    async def close(self) -> None:
        self.closed = True


class ManualSleeper:
    """Replacement for ``asyncio.sleep`` that blocks until ``tick()``."""

    def __init__(self) -> None:
        self.calls: list[float] = []
        self._pending: list[asyncio.Future[None]] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._pending.append(fut)
        await fut

    @property
    def waiting(self) -> int:
        return sum(1 for f in self._pending if not f.done())

    async def tick(self) -> None:
        """Wake every sleeper once and let the loop run."""
        pending, self._pending = self._pending, []
        for fut in pending:
            if not fut.done():
                fut.set_result(None)
        await settle()


async def settle(until: Callable[[], bool] | None = None, rounds: int = 200) -> None:
    """Yield to the event loop until ``until()`` holds (or ``rounds`` passes)."""
    for _ in range(rounds):
        if until is not None and until():
            return
        await asyncio.sleep(0)


def healthy(provider: Provider, *, latency_ms: float = 100.0, at: datetime = NOW) -> HealthStatus:
    return HealthStatus(provider=provider, is_healthy=True, latency_ms=latency_ms, last_check=at)


def unhealthy(provider: Provider, *, error_rate: float = 1.0, at: datetime = NOW) -> HealthStatus:
    return HealthStatus(
        provider=provider,
        is_healthy=False,
        consecutive_failures=1,
        last_check=at,
        error_message="boom",
        error_rate=error_rate,
    )


# ═══════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry()


@pytest.fixture
def adapters() -> dict[Provider, FakeAdapter]:
    return {p: FakeAdapter(p) for p in Provider}


@pytest.fixture
def sleeper() -> ManualSleeper:
    return ManualSleeper()


@pytest.fixture
def monitor(registry, adapters, store, clock, sleeper) -> HealthMonitor:
    return HealthMonitor(
        registry,
        adapters,
        store=store,
        probe_timeout_s=0.5,
        clock=clock,
        sleep=sleeper,
    )


@pytest.fixture
def ledger(registry, store, clock) -> CostLedger:
    return CostLedger(registry, store=store, clock=clock)


@pytest.fixture
def router(registry, clock) -> ProviderRouter:
    return ProviderRouter(registry, clock=clock)


@pytest.fixture
def orchestrator(registry, router, monitor, ledger, adapters) -> ProviderOrchestrator:
    return ProviderOrchestrator(registry, router, monitor, ledger, adapters, timeout_s=0.5)
