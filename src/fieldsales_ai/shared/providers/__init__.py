"""Provider-orchestration core.

Routing, health monitoring, cost accounting and budget alerts for the
upstream AI vendors.
"""

from fieldsales_ai.shared.providers.types import (
    AIRequest,
    AIResponse,
    BudgetAlert,
    BudgetConfig,
    CostEntry,
    HealthStatus,
    ProviderLimits,
    RequestContext,
    TokenUsage,
)
from fieldsales_ai.shared.providers.registry import ProviderRegistry, RoutingRoles
from fieldsales_ai.shared.providers.quota import QuotaManager
from fieldsales_ai.shared.providers.scheduler import PeriodicTask
from fieldsales_ai.shared.providers.health import HealthMonitor
from fieldsales_ai.shared.providers.cost_ledger import CostLedger
from fieldsales_ai.shared.providers.router import ProviderRouter
from fieldsales_ai.shared.providers.orchestrator import ProviderOrchestrator

__all__ = [
    "AIRequest",
    "AIResponse",
    "BudgetAlert",
    "BudgetConfig",
    "CostEntry",
    "CostLedger",
    "HealthMonitor",
    "HealthStatus",
    "PeriodicTask",
    "ProviderLimits",
    "ProviderOrchestrator",
    "ProviderRegistry",
    "ProviderRouter",
    "QuotaManager",
    "RequestContext",
    "RoutingRoles",
    "TokenUsage",
]
