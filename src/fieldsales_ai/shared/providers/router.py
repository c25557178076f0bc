"""Provider router — picks the vendor that serves a request.

Rules are evaluated in strict priority order, first match wins:

1. explicit user preference, if available
2. voice/image work goes to the free-tier provider while its daily quota lasts
3. hands-free mode or high/urgent requests go to the fast-path provider
4. knowledge search goes to the economy provider
5. code generation goes to the fast-path provider
6. the balanced provider
7. the static fallback order; failing that, the balanced provider anyway

Selection never raises while the registry is non-empty.  The router also owns
the per-provider usage counters (``QuotaManager``); the orchestrator bumps
them after a successful dispatch.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from fieldsales_ai.domain.enums import (
    Provider,
    RequestMode,
    RequestType,
    RouteRule,
    Urgency,
)
from fieldsales_ai.domain.exceptions import NoProviderAvailableError
from fieldsales_ai.shared.observability.metrics import ROUTING_DECISIONS
from fieldsales_ai.shared.providers.quota import QuotaManager
from fieldsales_ai.shared.providers.registry import ProviderRegistry
from fieldsales_ai.shared.providers.types import (
    HealthStatus,
    ProviderLimits,
    Recommendation,
    RequestContext,
    utcnow,
)

logger = structlog.get_logger(__name__)

# A status older than this is ignored and the provider assumed available.
STALE_STATUS_AFTER = timedelta(minutes=5)
MAX_ERROR_RATE = 0.5
FREE_TIER_HEADROOM = 0.9

_FAST_URGENCY = frozenset({Urgency.HIGH, Urgency.URGENT})
_FREE_TIER_TYPES = frozenset({RequestType.VOICE, RequestType.IMAGE})


@dataclass(frozen=True)
class RouteDecision:
    provider: Provider
    rule: RouteRule


class ProviderRouter:
    """Stateless rule engine over health and usage snapshots."""

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        quota_managers: Mapping[Provider, QuotaManager] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registry = registry
        self._clock = clock
        if quota_managers is None:
            quota_managers = {
                spec.provider: QuotaManager.from_spec(spec, clock=clock) for spec in registry
            }
        self._quotas = dict(quota_managers)

    # ── Selection ────────────────────────────────────────────
    def select(
        self,
        context: RequestContext,
        health: Mapping[Provider, HealthStatus] | None = None,
        limits: Mapping[Provider, ProviderLimits] | None = None,
    ) -> Provider:
        return self.route(context, health, limits).provider

    def route(
        self,
        context: RequestContext,
        health: Mapping[Provider, HealthStatus] | None = None,
        limits: Mapping[Provider, ProviderLimits] | None = None,
    ) -> RouteDecision:
        """Apply the routing rules and return the provider plus the rule that chose it."""
        if len(self._registry) == 0:
            raise NoProviderAvailableError()

        health = health or {}
        limits = limits if limits is not None else self.limits_snapshot()
        decision = self._decide(context, health, limits)

        ROUTING_DECISIONS.labels(provider=decision.provider.value, rule=decision.rule.value).inc()
        logger.info(
            "route_selected",
            provider=decision.provider.value,
            rule=decision.rule.value,
            request_type=context.type.value,
            urgency=context.urgency.value,
            mode=context.mode.value,
        )
        return decision

    def _decide(
        self,
        context: RequestContext,
        health: Mapping[Provider, HealthStatus],
        limits: Mapping[Provider, ProviderLimits],
    ) -> RouteDecision:
        roles = self._registry.roles

        def available(provider: Provider) -> bool:
            return provider in self._registry and self.is_available(provider, health.get(provider))

        preference = context.user_preference
        if preference is not None and available(preference):
            return RouteDecision(preference, RouteRule.USER_PREFERENCE)

        if context.type in _FREE_TIER_TYPES and self._free_tier_has_headroom(roles.free_tier, limits):
            return RouteDecision(roles.free_tier, RouteRule.FREE_TIER)

        if context.mode is RequestMode.HANDS_FREE or context.urgency in _FAST_URGENCY:
            if available(roles.fast_path):
                return RouteDecision(roles.fast_path, RouteRule.FAST_PATH)

        if context.type is RequestType.KNOWLEDGE_SEARCH and available(roles.economy):
            return RouteDecision(roles.economy, RouteRule.ECONOMY)

        if context.type is RequestType.CODE_GENERATION and available(roles.fast_path):
            return RouteDecision(roles.fast_path, RouteRule.FAST_PATH)

        if available(roles.balanced):
            return RouteDecision(roles.balanced, RouteRule.BALANCED)

        for provider in roles.fallback_order:
            if available(provider):
                return RouteDecision(provider, RouteRule.FALLBACK)

        logger.warning("no_available_providers", returning=roles.balanced.value)
        return RouteDecision(roles.balanced, RouteRule.LAST_RESORT)

    def is_available(self, provider: Provider, status: HealthStatus | None) -> bool:
        """Credential configured, and either no fresh status or a healthy one."""
        if not self._registry.has_credential(provider):
            return False
        if status is None:
            return True
        if self._clock() - status.last_check > STALE_STATUS_AFTER:
            return True
        return status.is_healthy and status.error_rate <= MAX_ERROR_RATE

    def _free_tier_has_headroom(
        self, provider: Provider, limits: Mapping[Provider, ProviderLimits]
    ) -> bool:
        if provider not in self._registry or not self._registry.has_credential(provider):
            return False
        snapshot = limits.get(provider)
        if snapshot is None or snapshot.requests_per_day <= 0:
            return True
        return snapshot.current_usage < FREE_TIER_HEADROOM * snapshot.requests_per_day

    # ── Cost estimation ──────────────────────────────────────
    def estimated_cost(self, provider: Provider, tokens: int) -> float:
        spec = self._registry.get(provider)
        if spec.free_tier:
            return 0.0
        return tokens / 1_000_000 * spec.pricing.cost_per_1k_tokens * 1000

    def recommend(
        self,
        context: RequestContext,
        health: Mapping[Provider, HealthStatus] | None = None,
    ) -> Recommendation:
        """Routing decision plus estimated cost and a human-readable reason."""
        decision = self.route(context, health)
        tokens = context.estimated_tokens or 1000
        name = self._registry.get(decision.provider).display_name
        reasons = {
            RouteRule.USER_PREFERENCE: f"Using {name} as requested",
            RouteRule.FREE_TIER: f"Using {name} (free tier) for voice/image",
            RouteRule.FAST_PATH: f"Using {name} for fast response",
            RouteRule.ECONOMY: f"Using {name} for cost optimization",
            RouteRule.BALANCED: f"Using {name} for balanced performance",
            RouteRule.FALLBACK: f"Using {name} as fallback",
            RouteRule.LAST_RESORT: f"Using {name}; no provider currently reports healthy",
        }
        return Recommendation(
            provider=decision.provider,
            estimated_cost=self.estimated_cost(decision.provider, tokens),
            reason=reasons[decision.rule],
        )

    # ── Usage counters ───────────────────────────────────────
    def record_dispatch(self, provider: Provider, tokens: int = 0) -> None:
        quota = self._quotas.get(provider)
        if quota is not None:
            quota.record_usage(tokens)

    def limits_snapshot(self) -> dict[Provider, ProviderLimits]:
        return {p: q.snapshot() for p, q in self._quotas.items()}

    def reset_daily_usage(self) -> None:
        for quota in self._quotas.values():
            quota.reset_daily()
        logger.info("daily_usage_reset", providers=len(self._quotas))
