"""Unit tests for application query handlers and DTO mapping."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from pydantic import ValidationError as PydanticValidationError

from conftest import NOW, FixedClock, healthy
from fieldsales_ai.application.dtos import (
    BudgetAlertResponse,
    BudgetUpdateRequest,
    HealthStatusResponse,
    RequestContextIn,
    SendRequest,
)
from fieldsales_ai.application.queries import OrchestrationQueries
from fieldsales_ai.domain.enums import AlertLevel, Provider, RequestType, Urgency
from fieldsales_ai.shared.providers.types import (
    BudgetAlert,
    CostSummary,
    HealthSummary,
    TokenUsage,
)


@pytest.fixture
def mock_monitor():
    monitor = Mock()
    monitor.summary.return_value = HealthSummary(
        total_providers=4,
        healthy_providers=3,
        unhealthy_providers=1,
        average_latency_ms=120.5,
        average_uptime=97.25,
        fastest_provider=Provider.GROQ,
    )
    monitor.export_data.return_value = {"groq": {"is_healthy": True}}
    return monitor


@pytest.fixture
def mock_ledger():
    ledger = Mock()
    ledger.summary.return_value = CostSummary(
        today=0.5, yesterday=0.25, this_month=3.0, last_month=7.0, total=10.25, by_provider={}
    )
    ledger.check_budget_alerts.return_value = BudgetAlert(AlertLevel.SAFE, "Budget healthy: 50.0% used", 50.0)
    ledger.export_data.return_value = {
        "costs": [{"provider": "together"}],
        "summary": {"total": 10.25},
        "budget": {"daily_limit": 1.0},
        "export_date": "ignored",
    }
    return ledger


# ═══════════════════════════════════════════════════════════════
#  OrchestrationQueries
# ═══════════════════════════════════════════════════════════════
def test_health_summary_delegates_to_monitor(mock_monitor, mock_ledger) -> None:
    queries = OrchestrationQueries(mock_monitor, mock_ledger)

    summary = queries.get_health_summary()

    assert summary.healthy_providers == 3
    mock_monitor.summary.assert_called_once()
    mock_ledger.summary.assert_not_called()


def test_cost_summary_delegates_to_ledger(mock_monitor, mock_ledger) -> None:
    queries = OrchestrationQueries(mock_monitor, mock_ledger)
    assert queries.get_cost_summary().total == 10.25
    mock_ledger.summary.assert_called_once()


def test_check_budget(mock_monitor, mock_ledger) -> None:
    queries = OrchestrationQueries(mock_monitor, mock_ledger)
    assert queries.check_budget().level == AlertLevel.SAFE


def test_export_report_combines_ledger_and_health(mock_monitor, mock_ledger) -> None:
    queries = OrchestrationQueries(mock_monitor, mock_ledger, clock=FixedClock())

    report = queries.export_report()

    assert set(report) == {"costs", "summary", "budget", "budget_alert", "health", "export_date"}
    assert report["costs"] == [{"provider": "together"}]
    assert report["budget_alert"]["level"] == "safe"
    assert report["health"] == {"groq": {"is_healthy": True}}
    assert report["export_date"] == NOW.isoformat()


def test_export_report_without_alert(mock_monitor, mock_ledger) -> None:
    mock_ledger.check_budget_alerts.return_value = None
    report = OrchestrationQueries(mock_monitor, mock_ledger).export_report()
    assert report["budget_alert"] is None


@pytest.mark.asyncio
async def test_export_report_with_real_services(monitor, ledger, clock) -> None:
    await ledger.track(Provider.TOGETHER, TokenUsage.of(1000, 1000), "analysis")
    monitor.report(Provider.GROQ, available=True, latency_ms=42)

    report = OrchestrationQueries(monitor, ledger, clock=clock).export_report()

    assert len(report["costs"]) == 1
    assert report["costs"][0]["request_type"] == "analysis"
    assert report["health"]["groq"]["is_healthy"] is True
    assert report["budget"]["daily_limit"] == 1.0


# ═══════════════════════════════════════════════════════════════
#  DTOs
# ═══════════════════════════════════════════════════════════════
def test_request_context_defaults() -> None:
    ctx = RequestContextIn().to_context()
    assert ctx.type == RequestType.TEXT
    assert ctx.urgency == Urgency.MEDIUM
    assert ctx.user_preference is None


def test_request_context_parses_wire_values() -> None:
    ctx = RequestContextIn.model_validate(
        {"type": "knowledge-search", "urgency": "urgent", "mode": "hands-free", "user_preference": "groq"}
    ).to_context()
    assert ctx.type == RequestType.KNOWLEDGE_SEARCH
    assert ctx.user_preference == Provider.GROQ


def test_send_request_rejects_blank_message() -> None:
    with pytest.raises(PydanticValidationError):
        SendRequest(message="   ")


def test_send_request_rejects_unknown_provider() -> None:
    with pytest.raises(PydanticValidationError):
        SendRequest.model_validate({"message": "hi", "context": {"user_preference": "openai"}})


def test_budget_update_is_partial() -> None:
    body = BudgetUpdateRequest(daily_limit=2.5)
    assert body.model_dump(exclude_none=True) == {"daily_limit": 2.5}


def test_health_status_response_rounds() -> None:
    status = healthy(Provider.GEMINI, latency_ms=12.3456)
    dto = HealthStatusResponse.from_status(status)
    assert dto.latency_ms == 12.35
    assert dto.provider == Provider.GEMINI


def test_budget_alert_response_rounds_percentage() -> None:
    dto = BudgetAlertResponse.from_alert(BudgetAlert(AlertLevel.WARNING, "Warning: 85.1% of budget used", 85.123))
    assert dto.percentage == 85.12
    assert dto.model_dump(mode="json")["level"] == "warning"
