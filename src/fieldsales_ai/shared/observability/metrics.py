"""Prometheus metrics for the AI orchestration service."""

from __future__ import annotations

from prometheus_client import Counter, Histogram, Gauge


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── AI request metrics ───────────────────────────────────────
AI_REQUESTS_TOTAL = Counter(
    "ai_requests_total",
    "Total AI requests dispatched to a vendor",
    ["provider", "status"],
)

AI_REQUEST_LATENCY = Histogram(
    "ai_request_latency_seconds",
    "Vendor response latency",
    ["provider"],
    buckets=(0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

ROUTING_DECISIONS = Counter(
    "ai_routing_decisions_total",
    "Provider selections by matching routing rule",
    ["provider", "rule"],
)

# ── Provider health metrics ──────────────────────────────────
PROVIDER_HEALTHY = Gauge(
    "provider_healthy",
    "1 if the last observation of the provider was healthy",
    ["provider"],
)

PROVIDER_UPTIME = Gauge(
    "provider_uptime_pct",
    "Rolling probe uptime (EMA, percent)",
    ["provider"],
)

PROVIDER_LATENCY = Gauge(
    "provider_latency_ms",
    "Latency of the last probe in milliseconds",
    ["provider"],
)

PROVIDER_PROBE_FAILURES = Counter(
    "provider_probe_failures_total",
    "Failed health probes",
    ["provider"],
)

# ── Cost metrics ─────────────────────────────────────────────
AI_SPEND_USD = Counter(
    "ai_spend_usd_total",
    "Accumulated AI spend in USD",
    ["provider"],
)

AI_TOKENS_TOTAL = Counter(
    "ai_tokens_total",
    "Tokens consumed",
    ["provider", "kind"],  # prompt / completion
)

BUDGET_UTILISATION = Gauge(
    "budget_utilisation_pct",
    "Spend as percent of budget limit",
    ["period"],  # daily / monthly
)
