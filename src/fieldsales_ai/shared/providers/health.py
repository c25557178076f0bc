"""Provider health monitor.

Probes every registered provider with a tiny completion, keeps one
``HealthStatus`` per provider and persists the snapshot.  Readers always see
a complete, consistent mapping: updates build a new dict and swap it in
under a lock (copy-on-write).

Probe failures never propagate.  They are logged, counted in Prometheus and
recorded on the status; callers only ever see the resulting snapshot.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.domain.exceptions import VendorError
from fieldsales_ai.shared.observability.metrics import (
    PROVIDER_HEALTHY,
    PROVIDER_LATENCY,
    PROVIDER_PROBE_FAILURES,
    PROVIDER_UPTIME,
)
from fieldsales_ai.shared.providers.registry import ProviderRegistry
from fieldsales_ai.shared.providers.scheduler import PeriodicTask
from fieldsales_ai.shared.providers.types import (
    GenerateOptions,
    HealthStatus,
    HealthSummary,
    utcnow,
)

if TYPE_CHECKING:
    from fieldsales_ai.ports.outbound import KeyValueStorePort, VendorAdapterPort

logger = structlog.get_logger(__name__)

HEALTH_STATUS_KEY = "fieldsales:health-status"
PROBE_PROMPT = "Hi"
PROBE_MAX_TOKENS = 5
UPTIME_DECAY = 0.95
MISSING_CREDENTIAL_MESSAGE = "API key not configured"


@dataclass(frozen=True)
class _ProbeOutcome:
    provider: Provider
    ok: bool
    latency_ms: float
    error: str | None = None


class HealthMonitor:
    """Owns the per-provider ``HealthStatus`` snapshot."""

    def __init__(
        self,
        registry: ProviderRegistry,
        adapters: Mapping[Provider, VendorAdapterPort],
        *,
        store: KeyValueStorePort | None = None,
        probe_timeout_s: float = 10.0,
        default_interval_minutes: float = 5.0,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._adapters = dict(adapters)
        self._store = store
        self._probe_timeout = probe_timeout_s
        self._default_interval = default_interval_minutes
        self._clock = clock
        self._sleep = sleep

        now = clock()
        self._statuses: dict[Provider, HealthStatus] = {
            p: HealthStatus(provider=p, last_check=now) for p in registry.providers
        }
        self._lock = threading.Lock()
        self._task: PeriodicTask | None = None

    # ── Persistence ──────────────────────────────────────────
    async def load(self) -> int:
        """Restore the persisted snapshot.  Returns how many statuses were restored."""
        if self._store is None:
            return 0
        data = await self._store.get(HEALTH_STATUS_KEY)
        if not isinstance(data, dict):
            return 0

        restored: dict[Provider, HealthStatus] = {}
        for key, raw in data.items():
            try:
                status = HealthStatus.from_dict(raw)
            except (KeyError, TypeError, ValueError):
                logger.warning("health_snapshot_entry_invalid", provider=key)
                continue
            if status.provider in self._registry:
                restored[status.provider] = status

        with self._lock:
            merged = dict(self._statuses)
            merged.update(restored)
            self._statuses = merged
        logger.info("health_snapshot_loaded", providers=len(restored))
        return len(restored)

    async def _persist(self, snapshot: Mapping[Provider, HealthStatus]) -> None:
        if self._store is None:
            return
        await self._store.set(
            HEALTH_STATUS_KEY,
            {p.value: s.to_dict() for p, s in snapshot.items()},
        )

    # ── Probing ──────────────────────────────────────────────
    async def check_all(self) -> dict[Provider, HealthStatus]:
        """Probe every provider concurrently and swap in the new snapshot."""
        outcomes = await asyncio.gather(
            *(self._probe(p) for p in self._registry.providers)
        )
        now = self._clock()
        with self._lock:
            updated = dict(self._statuses)
            for outcome in outcomes:
                updated[outcome.provider] = self._apply_probe(
                    updated[outcome.provider], outcome, now
                )
            self._statuses = updated

        for outcome in outcomes:
            self._export_metrics(updated[outcome.provider])
        await self._persist(updated)

        healthy = sum(1 for s in updated.values() if s.is_healthy)
        logger.info("health_check_completed", healthy=healthy, total=len(updated))
        return dict(updated)

    async def check_provider(self, provider: Provider) -> HealthStatus:
        """Probe a single provider."""
        self._registry.get(provider)
        outcome = await self._probe(provider)
        now = self._clock()
        with self._lock:
            updated = dict(self._statuses)
            status = self._apply_probe(updated[provider], outcome, now)
            updated[provider] = status
            self._statuses = updated
        self._export_metrics(status)
        await self._persist(updated)
        return status

    async def _probe(self, provider: Provider) -> _ProbeOutcome:
        adapter = self._adapters.get(provider)
        if adapter is None or not self._registry.has_credential(provider):
            logger.debug("provider_probe_skipped", provider=provider.value)
            return _ProbeOutcome(provider, ok=False, latency_ms=0.0, error=MISSING_CREDENTIAL_MESSAGE)

        start = time.perf_counter()
        error: str
        try:
            await asyncio.wait_for(
                adapter.generate(PROBE_PROMPT, GenerateOptions(max_tokens=PROBE_MAX_TOKENS)),
                timeout=self._probe_timeout,
            )
        except asyncio.TimeoutError:
            error = f"Timeout after {self._probe_timeout}s"
        except VendorError as exc:
            error = exc.message
        except Exception as exc:
            error = str(exc) or type(exc).__name__
        else:
            latency = (time.perf_counter() - start) * 1000
            return _ProbeOutcome(provider, ok=True, latency_ms=latency)

        latency = (time.perf_counter() - start) * 1000
        PROVIDER_PROBE_FAILURES.labels(provider=provider.value).inc()
        logger.warning(
            "provider_probe_failed",
            provider=provider.value,
            error=error,
            latency_ms=round(latency, 1),
        )
        return _ProbeOutcome(provider, ok=False, latency_ms=latency, error=error)

    @staticmethod
    def _apply_probe(previous: HealthStatus, outcome: _ProbeOutcome, now: datetime) -> HealthStatus:
        uptime = previous.uptime * UPTIME_DECAY + (100.0 if outcome.ok else 0.0) * (1 - UPTIME_DECAY)
        return HealthStatus(
            provider=previous.provider,
            is_healthy=outcome.ok,
            latency_ms=outcome.latency_ms,
            consecutive_failures=0 if outcome.ok else previous.consecutive_failures + 1,
            uptime=min(100.0, max(0.0, uptime)),
            last_check=now,
            error_message=None if outcome.ok else outcome.error,
            error_rate=0.0 if outcome.ok else 1.0,
        )

    @staticmethod
    def _export_metrics(status: HealthStatus) -> None:
        label = status.provider.value
        PROVIDER_HEALTHY.labels(provider=label).set(1 if status.is_healthy else 0)
        PROVIDER_UPTIME.labels(provider=label).set(status.uptime)
        PROVIDER_LATENCY.labels(provider=label).set(status.latency_ms)

    # ── Live-traffic reports ─────────────────────────────────
    def report(
        self,
        provider: Provider,
        *,
        available: bool,
        latency_ms: float | None = None,
        error_rate: float | None = None,
        error: str | None = None,
    ) -> HealthStatus:
        """Record an observation from a real dispatch.

        Uptime is left alone (it only moves on probes) and nothing is
        persisted here; the next ``check_all`` writes the snapshot.
        """
        now = self._clock()
        with self._lock:
            previous = self._statuses.get(provider) or HealthStatus(provider=provider, last_check=now)
            if available:
                status = replace(
                    previous,
                    is_healthy=True,
                    latency_ms=latency_ms if latency_ms is not None else previous.latency_ms,
                    consecutive_failures=0,
                    last_check=now,
                    error_message=None,
                    error_rate=0.0 if error_rate is None else error_rate,
                )
            else:
                status = replace(
                    previous,
                    is_healthy=False,
                    consecutive_failures=previous.consecutive_failures + 1,
                    last_check=now,
                    error_message=error or previous.error_message,
                    error_rate=1.0 if error_rate is None else error_rate,
                )
            updated = dict(self._statuses)
            updated[provider] = status
            self._statuses = updated

        PROVIDER_HEALTHY.labels(provider=provider.value).set(1 if status.is_healthy else 0)
        if not available:
            logger.warning(
                "provider_reported_unavailable",
                provider=provider.value,
                error=error,
                consecutive_failures=status.consecutive_failures,
            )
        return status

    # ── Background monitoring ────────────────────────────────
    def start_monitoring(self, interval_minutes: float | None = None) -> PeriodicTask:
        """Check immediately, then every ``interval_minutes``.  Replaces any running loop."""
        minutes = self._default_interval if interval_minutes is None else interval_minutes
        if self._task is not None:
            self._task.cancel()
        self._task = PeriodicTask(
            "health-monitor",
            minutes * 60,
            self.check_all,
            run_immediately=True,
            sleep=self._sleep,
        )
        self._task.start()
        return self._task

    async def stop_monitoring(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            await task.stop()

    @property
    def monitoring(self) -> bool:
        return self._task is not None and self._task.running

    # ── Queries ──────────────────────────────────────────────
    def snapshot(self) -> dict[Provider, HealthStatus]:
        return dict(self._statuses)

    def status(self, provider: Provider) -> HealthStatus:
        self._registry.get(provider)
        return self._statuses[provider]

    def healthy_providers(self) -> list[Provider]:
        return [p for p, s in self._statuses.items() if s.is_healthy]

    def has_healthy_provider(self) -> bool:
        return any(s.is_healthy for s in self._statuses.values())

    def fastest_healthy_provider(self) -> Provider | None:
        healthy = [s for s in self._statuses.values() if s.is_healthy]
        if not healthy:
            return None
        return min(healthy, key=lambda s: s.latency_ms).provider

    def fallback_order(self) -> list[Provider]:
        """Healthy providers, fewest consecutive failures first, then lowest latency."""
        healthy = [s for s in self._statuses.values() if s.is_healthy]
        healthy.sort(key=lambda s: (s.consecutive_failures, s.latency_ms))
        return [s.provider for s in healthy]

    def summary(self) -> HealthSummary:
        statuses = list(self._statuses.values())
        healthy = [s for s in statuses if s.is_healthy]
        avg_latency = sum(s.latency_ms for s in healthy) / len(healthy) if healthy else 0.0
        avg_uptime = sum(s.uptime for s in statuses) / len(statuses) if statuses else 0.0
        return HealthSummary(
            total_providers=len(statuses),
            healthy_providers=len(healthy),
            unhealthy_providers=len(statuses) - len(healthy),
            average_latency_ms=round(avg_latency, 2),
            average_uptime=round(avg_uptime, 2),
            fastest_provider=self.fastest_healthy_provider(),
        )

    def export_data(self) -> dict[str, Any]:
        return {p.value: s.to_dict() for p, s in self._statuses.items()}
