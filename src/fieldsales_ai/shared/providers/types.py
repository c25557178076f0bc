"""Core types for the provider-orchestration framework."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fieldsales_ai.domain.enums import (
    AlertLevel,
    Provider,
    RequestMode,
    RequestType,
    Urgency,
)
from fieldsales_ai.domain.exceptions import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ── Registry ─────────────────────────────────────────────────
@dataclass(frozen=True)
class ProviderPricing:
    """Vendor price table, USD.

    Attributes:
        input_cost_per_1m:  Price per 1M prompt tokens.
        output_cost_per_1m: Price per 1M completion tokens.
        cost_per_1k_tokens: Blended rate used for pre-dispatch estimates.
    """

    input_cost_per_1m: float = 0.0
    output_cost_per_1m: float = 0.0
    cost_per_1k_tokens: float = 0.0


@dataclass(frozen=True)
class ProviderSpec:
    """Static description of a single provider.

    Attributes:
        provider:           Identity key.
        display_name:       Human-readable vendor name.
        pricing:            Price table.
        free_tier:          Free-tier providers always cost 0, whatever the price table says.
        requests_per_day:   Free daily request cap (0 = unlimited).
        requests_per_minute: Per-minute request cap (0 = unlimited).
        tokens_per_minute:  Per-minute token cap (0 = unlimited).
        default_model:      Model used when none is configured.
    """

    provider: Provider
    display_name: str
    pricing: ProviderPricing = field(default_factory=ProviderPricing)
    free_tier: bool = False
    requests_per_day: int = 0
    requests_per_minute: int = 0
    tokens_per_minute: int = 0
    default_model: str = ""

    @property
    def quota_limited(self) -> bool:
        return self.requests_per_day > 0 or self.requests_per_minute > 0 or self.tokens_per_minute > 0


@dataclass(frozen=True)
class ProviderLimits:
    """Read-only snapshot of a provider's usage against its caps."""

    provider: Provider
    requests_per_day: int = 0
    requests_per_minute: int = 0
    tokens_per_minute: int = 0
    current_usage: int = 0
    requests_in_window: int = 0
    tokens_in_window: int = 0

    @property
    def daily_usage_pct(self) -> float:
        if self.requests_per_day <= 0:
            return 0.0
        return self.current_usage / self.requests_per_day * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider.value,
            "requests_per_day": self.requests_per_day,
            "requests_per_minute": self.requests_per_minute,
            "tokens_per_minute": self.tokens_per_minute,
            "current_usage": self.current_usage,
            "requests_in_window": self.requests_in_window,
            "tokens_in_window": self.tokens_in_window,
            "daily_usage_pct": round(self.daily_usage_pct, 2),
        }


# ── Health ───────────────────────────────────────────────────
@dataclass(frozen=True)
class HealthStatus:
    """Snapshot of one provider's health, as last observed."""

    provider: Provider
    is_healthy: bool = False
    latency_ms: float = 0.0
    consecutive_failures: int = 0
    uptime: float = 100.0
    last_check: datetime = field(default_factory=utcnow)
    error_message: str | None = None
    error_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider.value,
            "is_healthy": self.is_healthy,
            "latency_ms": self.latency_ms,
            "consecutive_failures": self.consecutive_failures,
            "uptime": self.uptime,
            "last_check": self.last_check.isoformat(),
            "error_message": self.error_message,
            "error_rate": self.error_rate,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HealthStatus:
        uptime = float(data.get("uptime", 100.0))
        return cls(
            provider=Provider(data["provider"]),
            is_healthy=bool(data.get("is_healthy", False)),
            latency_ms=float(data.get("latency_ms", 0.0)),
            consecutive_failures=int(data.get("consecutive_failures", 0)),
            uptime=min(100.0, max(0.0, uptime)),
            last_check=_parse_time(data["last_check"]),
            error_message=data.get("error_message"),
            error_rate=float(data.get("error_rate", 0.0)),
        )


@dataclass(frozen=True)
class HealthSummary:
    total_providers: int
    healthy_providers: int
    unhealthy_providers: int
    average_latency_ms: float
    average_uptime: float
    fastest_provider: Provider | None


# ── Cost accounting ──────────────────────────────────────────
@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def of(cls, prompt_tokens: int, completion_tokens: int, total_tokens: int | None = None) -> TokenUsage:
        """Build a usage record; ``total_tokens`` defaults to the sum."""
        if total_tokens is None or total_tokens <= 0:
            total_tokens = prompt_tokens + completion_tokens
        return cls(prompt_tokens, completion_tokens, total_tokens)

    def to_dict(self) -> dict[str, Any]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenUsage:
        return cls(
            prompt_tokens=int(data.get("prompt_tokens", 0)),
            completion_tokens=int(data.get("completion_tokens", 0)),
            total_tokens=int(data.get("total_tokens", 0)),
            timestamp=_parse_time(data["timestamp"]),
        )


@dataclass(frozen=True)
class CostEntry:
    """Append-only ledger record for one completed request."""

    provider: Provider
    usage: TokenUsage
    cost: float
    request_type: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider.value,
            "usage": self.usage.to_dict(),
            "cost": self.cost,
            "request_type": self.request_type,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CostEntry:
        return cls(
            provider=Provider(data["provider"]),
            usage=TokenUsage.from_dict(data["usage"]),
            cost=float(data["cost"]),
            request_type=str(data.get("request_type", "chat")),
            timestamp=_parse_time(data["timestamp"]),
        )


@dataclass(frozen=True)
class BudgetConfig:
    """Spending limits (USD) and alert thresholds (percent of limit)."""

    daily_limit: float = 1.0
    monthly_limit: float = 25.0
    warning_threshold: float = 80.0
    critical_threshold: float = 95.0

    def __post_init__(self) -> None:
        if self.daily_limit <= 0:
            raise ValidationError("daily_limit must be > 0")
        if self.monthly_limit <= 0:
            raise ValidationError("monthly_limit must be > 0")
        if not 0 < self.warning_threshold <= self.critical_threshold:
            raise ValidationError(
                "thresholds must satisfy 0 < warning_threshold <= critical_threshold"
            )

    def to_dict(self) -> dict[str, float]:
        return {
            "daily_limit": self.daily_limit,
            "monthly_limit": self.monthly_limit,
            "warning_threshold": self.warning_threshold,
            "critical_threshold": self.critical_threshold,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BudgetConfig:
        defaults = cls()
        return cls(
            daily_limit=float(data.get("daily_limit", defaults.daily_limit)),
            monthly_limit=float(data.get("monthly_limit", defaults.monthly_limit)),
            warning_threshold=float(data.get("warning_threshold", defaults.warning_threshold)),
            critical_threshold=float(data.get("critical_threshold", defaults.critical_threshold)),
        )


@dataclass(frozen=True)
class BudgetAlert:
    level: AlertLevel
    message: str
    percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level.value, "message": self.message, "percentage": self.percentage}


@dataclass(frozen=True)
class CostSummary:
    today: float
    yesterday: float
    this_month: float
    last_month: float
    total: float
    by_provider: dict[Provider, float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "today": self.today,
            "yesterday": self.yesterday,
            "this_month": self.this_month,
            "last_month": self.last_month,
            "total": self.total,
            "by_provider": {p.value: cost for p, cost in self.by_provider.items()},
        }


@dataclass(frozen=True)
class ProviderBreakdown:
    total_cost: float
    total_tokens: int
    request_count: int
    average_cost_per_request: float
    average_tokens_per_request: float


@dataclass(frozen=True)
class CostEstimate:
    cost: float
    is_free: bool
    message: str


# ── Requests ─────────────────────────────────────────────────
@dataclass(frozen=True)
class RequestContext:
    """Caller-declared intent for a single request.  Never persisted."""

    type: RequestType = RequestType.TEXT
    urgency: Urgency = Urgency.MEDIUM
    mode: RequestMode = RequestMode.NORMAL
    estimated_tokens: int = 1000
    user_preference: Provider | None = None
    requires_streaming: bool = False


@dataclass(frozen=True)
class Recommendation:
    provider: Provider
    estimated_cost: float
    reason: str


@dataclass(frozen=True)
class GenerateOptions:
    max_tokens: int | None = None
    temperature: float = 0.7


@dataclass(frozen=True)
class GenerationResult:
    """Normalised vendor reply: text plus token usage."""

    content: str
    usage: TokenUsage


@dataclass(frozen=True)
class AIRequest:
    message: str
    context: RequestContext | None = None
    options: GenerateOptions = field(default_factory=GenerateOptions)


@dataclass(frozen=True)
class AIResponse:
    content: str
    provider: Provider
    usage: TokenUsage
    cost: float
    latency_ms: float
