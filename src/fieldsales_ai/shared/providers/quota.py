"""Quota manager — tracks daily and per-minute usage per provider.

The daily counter (``current_usage``) rolls over on the UTC date boundary and
drives the free-tier routing rule.  The per-minute figures use a sliding
window: records older than the window are evicted automatically.  All limits
are soft; nothing here ever refuses a request.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime

import structlog

from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.shared.providers.types import ProviderLimits, ProviderSpec, utcnow

logger = structlog.get_logger(__name__)


@dataclass
class _UsageRecord:
    timestamp: float
    tokens: int


class QuotaManager:
    """Per-provider usage counters (daily + sliding-window RPM/TPM)."""

    def __init__(
        self,
        provider: Provider,
        *,
        requests_per_day: int = 0,
        requests_per_minute: int = 0,
        tokens_per_minute: int = 0,
        window_seconds: float = 60.0,
        warning_threshold: float = 0.90,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._rpd_limit = requests_per_day
        self._rpm_limit = requests_per_minute
        self._tpm_limit = tokens_per_minute
        self._window = window_seconds
        self._warning_thr = warning_threshold
        self._clock = clock
        self._monotonic = monotonic

        self._day: date = clock().date()
        self._daily_count = 0
        self._records: deque[_UsageRecord] = deque()
        self._lock = threading.Lock()
        self._warning_emitted = False

    @classmethod
    def from_spec(cls, spec: ProviderSpec, **kwargs: object) -> QuotaManager:
        return cls(
            spec.provider,
            requests_per_day=spec.requests_per_day,
            requests_per_minute=spec.requests_per_minute,
            tokens_per_minute=spec.tokens_per_minute,
            **kwargs,  # type: ignore[arg-type]
        )

    def record_usage(self, tokens: int = 0) -> None:
        """Record one dispatch and its token usage."""
        with self._lock:
            self._rollover()
            self._daily_count += 1
            self._records.append(_UsageRecord(self._monotonic(), tokens))
            self._evict()
            self._check_warning()

    @property
    def current_usage(self) -> int:
        with self._lock:
            self._rollover()
            return self._daily_count

    def snapshot(self) -> ProviderLimits:
        with self._lock:
            self._rollover()
            self._evict()
            return ProviderLimits(
                provider=self._provider,
                requests_per_day=self._rpd_limit,
                requests_per_minute=self._rpm_limit,
                tokens_per_minute=self._tpm_limit,
                current_usage=self._daily_count,
                requests_in_window=len(self._records),
                tokens_in_window=sum(r.tokens for r in self._records),
            )

    def reset_daily(self) -> None:
        with self._lock:
            self._day = self._clock().date()
            self._daily_count = 0
            self._warning_emitted = False

    # ── Internals ────────────────────────────────────────────
    def _rollover(self) -> None:
        """Zero the daily counter when the date changes. Caller holds lock."""
        today = self._clock().date()
        if today != self._day:
            if self._daily_count:
                logger.info(
                    "daily_usage_rollover",
                    provider=self._provider.value,
                    previous_day=self._day.isoformat(),
                    requests=self._daily_count,
                )
            self._day = today
            self._daily_count = 0
            self._warning_emitted = False

    def _evict(self) -> None:
        """Remove records outside the sliding window. Caller holds lock."""
        cutoff = self._monotonic() - self._window
        while self._records and self._records[0].timestamp < cutoff:
            self._records.popleft()

    def _check_warning(self) -> None:
        """Emit one early warning when nearing a cap. Caller holds lock."""
        if self._warning_emitted:
            return
        if self._rpd_limit > 0:
            usage_pct = self._daily_count / self._rpd_limit
            limit, used, kind = self._rpd_limit, self._daily_count, "daily"
        elif self._rpm_limit > 0:
            usage_pct = len(self._records) / self._rpm_limit
            limit, used, kind = self._rpm_limit, len(self._records), "per_minute"
        else:
            return
        if usage_pct >= self._warning_thr:
            self._warning_emitted = True
            logger.warning(
                "quota_warning",
                provider=self._provider.value,
                quota=kind,
                usage_pct=float(f"{(usage_pct * 100):.1f}"),
                requests_used=used,
                limit=limit,
            )
