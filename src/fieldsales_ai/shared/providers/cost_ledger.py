"""Cost ledger — meters token usage, converts it to money and checks budgets.

The in-memory entry log is authoritative.  Appends are serialised under an
``asyncio.Lock``; summaries iterate a tuple snapshot so readers never see a
half-applied append.  Day and month boundaries are evaluated in UTC.

Budget alerts are observability only: a ``budget_*`` log event and the
``budget_utilisation_pct`` gauge.  Nothing here ever refuses a request.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog

from fieldsales_ai.domain.enums import AlertLevel, Provider
from fieldsales_ai.domain.exceptions import BudgetExceeded, ValidationError
from fieldsales_ai.shared.observability.metrics import (
    AI_SPEND_USD,
    AI_TOKENS_TOTAL,
    BUDGET_UTILISATION,
)
from fieldsales_ai.shared.providers.registry import ProviderRegistry
from fieldsales_ai.shared.providers.types import (
    BudgetAlert,
    BudgetConfig,
    CostEntry,
    CostEstimate,
    CostSummary,
    ProviderBreakdown,
    TokenUsage,
    utcnow,
)

if TYPE_CHECKING:
    from fieldsales_ai.ports.outbound import KeyValueStorePort

logger = structlog.get_logger(__name__)

COST_LEDGER_KEY = "fieldsales:cost-ledger"
DEFAULT_RETENTION = timedelta(days=30)
MAX_PERSISTED_ENTRIES = 1000

_ALERT_RANK = {
    AlertLevel.SAFE: 0,
    AlertLevel.WARNING: 1,
    AlertLevel.CRITICAL: 2,
    AlertLevel.EXCEEDED: 3,
}


def _day_start(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _month_start(moment: datetime) -> datetime:
    return _day_start(moment).replace(day=1)


class CostLedger:
    """Append-only cost log plus the active ``BudgetConfig``."""

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        store: KeyValueStorePort | None = None,
        budget: BudgetConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
        retention: timedelta = DEFAULT_RETENTION,
        max_persisted_entries: int = MAX_PERSISTED_ENTRIES,
    ) -> None:
        self._registry = registry
        self._store = store
        self._budget = budget or BudgetConfig()
        self._clock = clock
        self._retention = retention
        self._max_persisted = max_persisted_entries

        self._entries: list[CostEntry] = []
        self._lock = asyncio.Lock()
        self._last_alert_level: AlertLevel | None = None
        self._budget_exceeded: BudgetExceeded | None = None

    # ── Pricing ──────────────────────────────────────────────
    def calculate_cost(self, provider: Provider, usage: TokenUsage) -> float:
        """Money owed for ``usage``.  Free-tier providers always cost 0."""
        spec = self._registry.get(provider)
        if spec.free_tier:
            return 0.0
        input_cost = usage.prompt_tokens / 1_000_000 * spec.pricing.input_cost_per_1m
        output_cost = usage.completion_tokens / 1_000_000 * spec.pricing.output_cost_per_1m
        return input_cost + output_cost

    def estimate_cost(self, provider: Provider, tokens: int) -> CostEstimate:
        """Rough pre-dispatch estimate at the average of input and output rates."""
        spec = self._registry.get(provider)
        if spec.free_tier:
            return CostEstimate(cost=0.0, is_free=True, message=f"{spec.display_name} is free tier")
        avg_rate = (spec.pricing.input_cost_per_1m + spec.pricing.output_cost_per_1m) / 2
        cost = tokens / 1_000_000 * avg_rate
        return CostEstimate(
            cost=cost,
            is_free=False,
            message=f"Estimated ${cost:.6f} for {tokens} tokens on {spec.display_name}",
        )

    # ── Recording ────────────────────────────────────────────
    async def track(
        self,
        provider: Provider,
        usage: TokenUsage,
        request_type: str = "chat",
    ) -> CostEntry:
        """Append an entry for a completed request, persist, then evaluate the budget."""
        cost = self.calculate_cost(provider, usage)
        async with self._lock:
            entry = CostEntry(
                provider=provider,
                usage=usage,
                cost=cost,
                request_type=request_type,
                timestamp=self._clock(),
            )
            self._entries.append(entry)
            await self._persist()

        AI_SPEND_USD.labels(provider=provider.value).inc(cost)
        AI_TOKENS_TOTAL.labels(provider=provider.value, kind="prompt").inc(usage.prompt_tokens)
        AI_TOKENS_TOTAL.labels(provider=provider.value, kind="completion").inc(usage.completion_tokens)
        logger.info(
            "cost_tracked",
            provider=provider.value,
            request_type=request_type,
            total_tokens=usage.total_tokens,
            cost_usd=round(cost, 6),
        )
        self._emit_alert(self.check_budget_alerts())
        return entry

    async def prune(self, now: datetime | None = None) -> int:
        """Drop entries older than the retention window.  Returns how many were removed."""
        cutoff = (now or self._clock()) - self._retention
        async with self._lock:
            kept = [e for e in self._entries if e.timestamp >= cutoff]
            removed = len(self._entries) - len(kept)
            self._entries = kept
            await self._persist()
        if removed:
            logger.info("cost_entries_pruned", removed=removed, remaining=len(kept))
        return removed

    # ── Budget ───────────────────────────────────────────────
    @property
    def budget(self) -> BudgetConfig:
        return self._budget

    async def update_budget(self, config: BudgetConfig) -> BudgetConfig:
        """Replace the whole budget config (already validated on construction)."""
        async with self._lock:
            self._budget = config
            self._last_alert_level = None
            await self._persist()
        logger.info("budget_updated", **config.to_dict())
        self._emit_alert(self.check_budget_alerts())
        return config

    def check_budget_alerts(self, now: datetime | None = None) -> BudgetAlert | None:
        """Alert level for the worse of daily and monthly utilisation.

        Returns ``None`` only while nothing has been spent today or this month.
        """
        summary = self.summary(now)
        budget = self._budget
        daily_pct = summary.today / budget.daily_limit * 100
        monthly_pct = summary.this_month / budget.monthly_limit * 100
        BUDGET_UTILISATION.labels(period="daily").set(daily_pct)
        BUDGET_UTILISATION.labels(period="monthly").set(monthly_pct)
        pct = max(daily_pct, monthly_pct)

        if pct >= 100:
            return BudgetAlert(
                level=AlertLevel.EXCEEDED,
                message=(
                    f"Budget exceeded! Daily: ${summary.today:.4f}/${budget.daily_limit}, "
                    f"Monthly: ${summary.this_month:.2f}/${budget.monthly_limit}"
                ),
                percentage=pct,
            )
        if pct >= budget.critical_threshold:
            return BudgetAlert(AlertLevel.CRITICAL, f"Critical: {pct:.1f}% of budget used", pct)
        if pct >= budget.warning_threshold:
            return BudgetAlert(AlertLevel.WARNING, f"Warning: {pct:.1f}% of budget used", pct)
        if pct > 0:
            return BudgetAlert(AlertLevel.SAFE, f"Budget healthy: {pct:.1f}% used", pct)
        return None

    @property
    def budget_exceeded(self) -> BudgetExceeded | None:
        """Latest over-budget signal, cleared once spend is back under the limits."""
        return self._budget_exceeded

    def _emit_alert(self, alert: BudgetAlert | None) -> None:
        """Log once per escalation so a busy day does not flood the logs."""
        if alert is not None and alert.level is AlertLevel.EXCEEDED:
            self._budget_exceeded = BudgetExceeded(alert.message, alert.percentage)
        else:
            self._budget_exceeded = None

        if alert is None or alert.level is AlertLevel.SAFE:
            self._last_alert_level = alert.level if alert else None
            return
        previous = self._last_alert_level
        self._last_alert_level = alert.level
        if previous is not None and _ALERT_RANK[previous] >= _ALERT_RANK[alert.level]:
            return
        extra = {"code": self._budget_exceeded.code} if self._budget_exceeded else {}
        logger.warning(
            f"budget_{alert.level.value}",
            percentage=round(alert.percentage, 2),
            message=alert.message,
            **extra,
        )

    # ── Queries ──────────────────────────────────────────────
    def summary(self, now: datetime | None = None) -> CostSummary:
        """Spend per period and per provider, in one pass over a snapshot."""
        now = now or self._clock()
        today_start = _day_start(now)
        yesterday_start = today_start - timedelta(days=1)
        month_start = _month_start(now)
        last_month_start = _month_start(month_start - timedelta(days=1))

        today = yesterday = this_month = last_month = total = 0.0
        by_provider: dict[Provider, float] = {p: 0.0 for p in self._registry.providers}

        for entry in tuple(self._entries):
            ts = entry.timestamp
            total += entry.cost
            by_provider[entry.provider] = by_provider.get(entry.provider, 0.0) + entry.cost
            if ts >= today_start:
                today += entry.cost
            elif ts >= yesterday_start:
                yesterday += entry.cost
            if ts >= month_start:
                this_month += entry.cost
            elif ts >= last_month_start:
                last_month += entry.cost

        return CostSummary(
            today=today,
            yesterday=yesterday,
            this_month=this_month,
            last_month=last_month,
            total=total,
            by_provider=by_provider,
        )

    def provider_breakdown(self, provider: Provider) -> ProviderBreakdown:
        self._registry.get(provider)
        entries = [e for e in tuple(self._entries) if e.provider is provider]
        total_cost = sum(e.cost for e in entries)
        total_tokens = sum(e.usage.total_tokens for e in entries)
        count = len(entries)
        return ProviderBreakdown(
            total_cost=total_cost,
            total_tokens=total_tokens,
            request_count=count,
            average_cost_per_request=total_cost / count if count else 0.0,
            average_tokens_per_request=total_tokens / count if count else 0.0,
        )

    def recent_entries(self, limit: int = 50) -> list[CostEntry]:
        """Newest first."""
        if limit <= 0:
            return []
        return list(reversed(self._entries[-limit:]))

    def entries(self) -> tuple[CostEntry, ...]:
        return tuple(self._entries)

    def export_data(self) -> dict[str, Any]:
        return {
            "costs": [e.to_dict() for e in tuple(self._entries)],
            "summary": self.summary().to_dict(),
            "budget": self._budget.to_dict(),
            "export_date": self._clock().isoformat(),
        }

    # ── Persistence ──────────────────────────────────────────
    async def load(self) -> int:
        """Restore entries and budget from the store.  Returns entries restored."""
        if self._store is None:
            return 0
        data = await self._store.get(COST_LEDGER_KEY)
        if not isinstance(data, dict):
            return 0

        entries: list[CostEntry] = []
        for raw in data.get("costs") or []:
            try:
                entry = CostEntry.from_dict(raw)
            except (KeyError, TypeError, ValueError):
                logger.warning("cost_entry_invalid", entry=raw)
                continue
            if entry.provider in self._registry:
                entries.append(entry)

        budget = self._budget
        if data.get("budget"):
            try:
                budget = BudgetConfig.from_dict(data["budget"])
            except (TypeError, ValueError, ValidationError):
                logger.warning("persisted_budget_invalid", budget=data["budget"])

        async with self._lock:
            self._entries = entries
            self._budget = budget
        logger.info("cost_ledger_loaded", entries=len(entries), **budget.to_dict())
        return len(entries)

    async def _persist(self) -> None:
        """Write the most recent entries and the budget.  Caller holds lock.

        A failing store is logged; the in-memory log stays authoritative.
        """
        if self._store is None:
            return
        try:
            await self._store.set(
                COST_LEDGER_KEY,
                {
                    "costs": [e.to_dict() for e in self._entries[-self._max_persisted:]],
                    "budget": self._budget.to_dict(),
                },
            )
        except Exception as exc:
            logger.error("cost_ledger_persist_failed", error=str(exc))
