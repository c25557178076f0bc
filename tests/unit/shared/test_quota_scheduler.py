"""Tests for QuotaManager counters and the PeriodicTask background loop."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import FixedClock, ManualSleeper, settle
from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.shared.providers.quota import QuotaManager
from fieldsales_ai.shared.providers.registry import DEFAULT_PROVIDER_SPECS
from fieldsales_ai.shared.providers.scheduler import PeriodicTask


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


# ═══════════════════════════════════════════════════════════════
#  QuotaManager
# ═══════════════════════════════════════════════════════════════
class TestQuotaManager:
    def test_from_spec_copies_caps(self, clock: FixedClock) -> None:
        gemini = next(s for s in DEFAULT_PROVIDER_SPECS if s.provider is Provider.GEMINI)
        snap = QuotaManager.from_spec(gemini, clock=clock).snapshot()
        assert snap.provider == Provider.GEMINI
        assert snap.requests_per_day == 1500
        assert snap.requests_per_minute == 15
        assert snap.current_usage == 0

    def test_record_usage_counts_requests_and_tokens(self, clock: FixedClock) -> None:
        q = QuotaManager(Provider.GROQ, requests_per_minute=30, tokens_per_minute=14_400, clock=clock)
        q.record_usage(100)
        q.record_usage(250)
        snap = q.snapshot()
        assert q.current_usage == 2
        assert snap.requests_in_window == 2
        assert snap.tokens_in_window == 350

    def test_sliding_window_evicts_old_records(self, clock: FixedClock) -> None:
        mono = FakeMonotonic()
        q = QuotaManager(Provider.GROQ, requests_per_minute=30, clock=clock, monotonic=mono)
        q.record_usage(10)
        mono.value += 61
        q.record_usage(5)

        snap = q.snapshot()

        assert snap.requests_in_window == 1
        assert snap.tokens_in_window == 5
        # Daily counter is not windowed
        assert snap.current_usage == 2

    def test_daily_counter_rolls_over_at_utc_midnight(self, clock: FixedClock) -> None:
        q = QuotaManager(Provider.GEMINI, requests_per_day=1500, clock=clock)
        for _ in range(3):
            q.record_usage()
        assert q.current_usage == 3

        clock.now = datetime(2025, 6, 16, 0, 0, 1, tzinfo=timezone.utc)
        assert q.current_usage == 0
        q.record_usage()
        assert q.snapshot().current_usage == 1

    def test_reset_daily_keeps_window(self, clock: FixedClock) -> None:
        q = QuotaManager(Provider.GEMINI, requests_per_day=1500, requests_per_minute=15, clock=clock)
        q.record_usage(7)
        q.reset_daily()
        snap = q.snapshot()
        assert snap.current_usage == 0
        assert snap.requests_in_window == 1

    def test_limits_never_refuse(self, clock: FixedClock) -> None:
        q = QuotaManager(Provider.GEMINI, requests_per_day=2, clock=clock)
        for _ in range(5):
            q.record_usage()
        snap = q.snapshot()
        assert snap.current_usage == 5
        assert snap.daily_usage_pct == pytest.approx(250.0)


# ═══════════════════════════════════════════════════════════════
#  PeriodicTask
# ═══════════════════════════════════════════════════════════════
class TestPeriodicTask:
    def test_rejects_non_positive_interval(self) -> None:
        async def noop() -> None:
            return None

        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, noop)

    @pytest.mark.asyncio
    async def test_runs_immediately_then_each_interval(self, sleeper: ManualSleeper) -> None:
        calls: list[int] = []

        async def job() -> None:
            calls.append(len(calls))

        task = PeriodicTask("job", 30, job, sleep=sleeper)
        task.start()
        await settle(lambda: sleeper.waiting == 1)
        assert calls == [0]
        assert sleeper.calls == [30]

        await sleeper.tick()
        await settle(lambda: len(calls) == 2)
        assert calls == [0, 1]

        await task.stop()
        assert task.running is False

    @pytest.mark.asyncio
    async def test_deferred_start_waits_first(self, sleeper: ManualSleeper) -> None:
        calls: list[str] = []

        async def job() -> None:
            calls.append("run")

        task = PeriodicTask("deferred", 10, job, run_immediately=False, sleep=sleeper)
        task.start()
        await settle(lambda: sleeper.waiting == 1)
        assert calls == []

        await sleeper.tick()
        await settle(lambda: calls == ["run"])
        assert calls == ["run"]
        await task.stop()

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_loop_alive(self, sleeper: ManualSleeper) -> None:
        async def boom() -> None:
            raise RuntimeError("probe blew up")

        task = PeriodicTask("flaky", 5, boom, sleep=sleeper)
        task.start()
        await settle(lambda: sleeper.waiting == 1)

        assert task.running is True
        assert task.runs == 1

        await sleeper.tick()
        await settle(lambda: task.runs == 2)
        assert task.runs == 2
        await task.stop()

    @pytest.mark.asyncio
    async def test_start_again_replaces_loop(self, sleeper: ManualSleeper) -> None:
        calls: list[str] = []

        async def job() -> None:
            calls.append("run")

        task = PeriodicTask("job", 60, job, sleep=sleeper)
        task.start()
        await settle(lambda: sleeper.waiting == 1)
        task.start(interval_seconds=15)
        await settle(lambda: len(calls) == 2 and sleeper.waiting == 1)

        assert task.interval_seconds == 15
        assert sleeper.calls[-1] == 15
        assert task.running is True
        await task.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, sleeper: ManualSleeper) -> None:
        async def job() -> None:
            return None

        task = PeriodicTask("job", 1, job, sleep=sleeper)
        await task.stop()
        task.start()
        await settle(lambda: sleeper.waiting == 1)
        await task.stop()
        await task.stop()
        assert task.running is False
