"""Query handlers — read-side use cases.

Query handlers are intentionally simple: they read snapshots from the health
monitor and cost ledger and return plain objects.  No state is mutated here.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from fieldsales_ai.shared.providers.cost_ledger import CostLedger
from fieldsales_ai.shared.providers.health import HealthMonitor
from fieldsales_ai.shared.providers.types import (
    BudgetAlert,
    CostSummary,
    HealthSummary,
    utcnow,
)

logger = structlog.get_logger(__name__)


class OrchestrationQueries:
    """Pure reads over provider health and spend."""

    def __init__(
        self,
        monitor: HealthMonitor,
        ledger: CostLedger,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._monitor = monitor
        self._ledger = ledger
        self._clock = clock

    def get_health_summary(self) -> HealthSummary:
        return self._monitor.summary()

    def get_cost_summary(self) -> CostSummary:
        return self._ledger.summary()

    def check_budget(self) -> BudgetAlert | None:
        return self._ledger.check_budget_alerts()

    def export_report(self) -> dict[str, Any]:
        """Full ledger, budget and health snapshot in one JSON-ready document."""
        ledger = self._ledger.export_data()
        alert = self._ledger.check_budget_alerts()
        logger.debug("report_exported", entries=len(ledger["costs"]))
        return {
            "costs": ledger["costs"],
            "summary": ledger["summary"],
            "budget": ledger["budget"],
            "budget_alert": alert.to_dict() if alert else None,
            "health": self._monitor.export_data(),
            "export_date": self._clock().isoformat(),
        }
