"""Data Transfer Objects — Pydantic models for API boundaries.

DTOs handle serialisation, validation, and documentation.  They live in the
application layer because they are *not* core objects; they adapt between
the external world and the provider-orchestration core.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from fieldsales_ai.domain.enums import (
    AlertLevel,
    Provider,
    RequestMode,
    RequestType,
    Urgency,
)
from fieldsales_ai.shared.providers.types import (
    AIResponse,
    BudgetAlert,
    BudgetConfig,
    CostEntry,
    HealthStatus,
    HealthSummary,
    ProviderLimits,
    RequestContext,
)


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class ErrorResponse(BaseModel):
    code: str
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    services: dict[str, str] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  AI requests
# ═══════════════════════════════════════════════════════════════
class RequestContextIn(BaseModel):
    type: RequestType = RequestType.TEXT
    urgency: Urgency = Urgency.MEDIUM
    mode: RequestMode = RequestMode.NORMAL
    estimated_tokens: int = Field(1000, ge=0, le=1_000_000)
    user_preference: Provider | None = None
    requires_streaming: bool = False

    def to_context(self) -> RequestContext:
        return RequestContext(
            type=self.type,
            urgency=self.urgency,
            mode=self.mode,
            estimated_tokens=self.estimated_tokens,
            user_preference=self.user_preference,
            requires_streaming=self.requires_streaming,
        )


class SendRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    message: str = Field(..., min_length=1, max_length=32_000)
    context: RequestContextIn | None = None
    max_tokens: int | None = Field(None, gt=0, le=32_768)
    temperature: float = Field(0.7, ge=0.0, le=2.0)


class TokenUsageResponse(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    timestamp: datetime


class SendResponse(BaseModel):
    content: str
    provider: Provider
    usage: TokenUsageResponse
    cost: float
    latency_ms: float

    @classmethod
    def from_response(cls, response: AIResponse) -> SendResponse:
        usage = response.usage
        return cls(
            content=response.content,
            provider=response.provider,
            usage=TokenUsageResponse(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
                timestamp=usage.timestamp,
            ),
            cost=response.cost,
            latency_ms=round(response.latency_ms, 2),
        )


class RecommendationResponse(BaseModel):
    provider: Provider
    estimated_cost: float
    reason: str


# ═══════════════════════════════════════════════════════════════
#  Provider health
# ═══════════════════════════════════════════════════════════════
class HealthStatusResponse(BaseModel):
    provider: Provider
    is_healthy: bool
    latency_ms: float
    consecutive_failures: int
    uptime: float
    last_check: datetime
    error_message: str | None = None
    error_rate: float

    @classmethod
    def from_status(cls, status: HealthStatus) -> HealthStatusResponse:
        return cls(
            provider=status.provider,
            is_healthy=status.is_healthy,
            latency_ms=round(status.latency_ms, 2),
            consecutive_failures=status.consecutive_failures,
            uptime=round(status.uptime, 2),
            last_check=status.last_check,
            error_message=status.error_message,
            error_rate=status.error_rate,
        )


class HealthSummaryResponse(BaseModel):
    total_providers: int
    healthy_providers: int
    unhealthy_providers: int
    average_latency_ms: float
    average_uptime: float
    fastest_provider: Provider | None = None

    @classmethod
    def from_summary(cls, summary: HealthSummary) -> HealthSummaryResponse:
        return cls(
            total_providers=summary.total_providers,
            healthy_providers=summary.healthy_providers,
            unhealthy_providers=summary.unhealthy_providers,
            average_latency_ms=summary.average_latency_ms,
            average_uptime=summary.average_uptime,
            fastest_provider=summary.fastest_provider,
        )


class ProviderLimitsResponse(BaseModel):
    provider: Provider
    requests_per_day: int
    requests_per_minute: int
    tokens_per_minute: int
    current_usage: int
    requests_in_window: int
    tokens_in_window: int
    daily_usage_pct: float

    @classmethod
    def from_limits(cls, limits: ProviderLimits) -> ProviderLimitsResponse:
        return cls(**limits.to_dict())


# ═══════════════════════════════════════════════════════════════
#  Costs & budget
# ═══════════════════════════════════════════════════════════════
class CostSummaryResponse(BaseModel):
    today: float
    yesterday: float
    this_month: float
    last_month: float
    total: float
    by_provider: dict[str, float]


class CostEntryResponse(BaseModel):
    provider: Provider
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float
    request_type: str
    timestamp: datetime

    @classmethod
    def from_entry(cls, entry: CostEntry) -> CostEntryResponse:
        return cls(
            provider=entry.provider,
            prompt_tokens=entry.usage.prompt_tokens,
            completion_tokens=entry.usage.completion_tokens,
            total_tokens=entry.usage.total_tokens,
            cost=entry.cost,
            request_type=entry.request_type,
            timestamp=entry.timestamp,
        )


class ProviderBreakdownResponse(BaseModel):
    provider: Provider
    total_cost: float
    total_tokens: int
    request_count: int
    average_cost_per_request: float
    average_tokens_per_request: float


class CostEstimateResponse(BaseModel):
    provider: Provider
    tokens: int
    cost: float
    is_free: bool
    message: str


class BudgetResponse(BaseModel):
    daily_limit: float
    monthly_limit: float
    warning_threshold: float
    critical_threshold: float

    @classmethod
    def from_config(cls, config: BudgetConfig) -> BudgetResponse:
        return cls(**config.to_dict())


class BudgetUpdateRequest(BaseModel):
    """Partial update; omitted fields keep their current value."""

    daily_limit: float | None = Field(None, gt=0)
    monthly_limit: float | None = Field(None, gt=0)
    warning_threshold: float | None = Field(None, gt=0, le=100)
    critical_threshold: float | None = Field(None, gt=0, le=100)


class BudgetAlertResponse(BaseModel):
    level: AlertLevel
    message: str
    percentage: float

    @classmethod
    def from_alert(cls, alert: BudgetAlert) -> BudgetAlertResponse:
        return cls(level=alert.level, message=alert.message, percentage=round(alert.percentage, 2))
