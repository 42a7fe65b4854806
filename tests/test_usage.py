"""Tests for usage gates."""

from datetime import date, timedelta
from unittest.mock import MagicMock

from berean.usage import (
    CompositeUsageGate,
    DailyQuotaGate,
    MessageRateLimiter,
    build_usage_gate,
)
from conftest import FakeClock, FakeGate


class FakeCalendar:
    def __init__(self, day: date) -> None:
        self.day = day

    def __call__(self) -> date:
        return self.day


class TestDailyQuotaGate:
    """Tests for the free-tier daily quota."""

    def test_allows_until_quota_used(self):
        gate = DailyQuotaGate(messages_per_day=3, today=FakeCalendar(date(2024, 1, 1)))

        for _ in range(3):
            assert gate.can_send() is True
            gate.record_usage()

        assert gate.can_send() is False
        assert gate.messages_used == 3
        assert gate.messages_remaining == 0

    def test_default_quota(self):
        gate = DailyQuotaGate()
        assert gate.messages_per_day == DailyQuotaGate.FREE_MESSAGES_PER_DAY == 10
        assert gate.messages_remaining == 10

    def test_resets_on_new_day(self):
        calendar = FakeCalendar(date(2024, 1, 1))
        gate = DailyQuotaGate(messages_per_day=1, today=calendar)
        gate.record_usage()
        assert gate.can_send() is False

        calendar.day += timedelta(days=1)

        assert gate.can_send() is True
        assert gate.messages_used == 0

    def test_pro_access_is_unlimited(self):
        gate = DailyQuotaGate(messages_per_day=1, pro_access=True)

        for _ in range(5):
            gate.record_usage()

        assert gate.can_send() is True
        assert gate.messages_used == 0
        assert gate.messages_remaining == 1


class TestMessageRateLimiter:
    """Tests for the short-term throttle."""

    def test_enforces_min_interval(self):
        clock = FakeClock(100.0)
        limiter = MessageRateLimiter(min_interval=1.0, clock=clock)

        assert limiter.can_send() is True
        limiter.record_usage()
        clock.now += 0.5
        assert limiter.can_send() is False
        clock.now += 0.5
        assert limiter.can_send() is True

    def test_enforces_per_minute_cap(self):
        clock = FakeClock(0.0)
        limiter = MessageRateLimiter(min_interval=0.0, max_per_minute=3, clock=clock)

        for _ in range(3):
            assert limiter.can_send() is True
            limiter.record_usage()
            clock.now += 1.0

        assert limiter.can_send() is False

        clock.now = 61.0
        assert limiter.can_send() is True

    def test_reset(self):
        clock = FakeClock(0.0)
        limiter = MessageRateLimiter(min_interval=10.0, clock=clock)
        limiter.record_usage()
        assert limiter.can_send() is False

        limiter.reset()

        assert limiter.can_send() is True


class TestCompositeUsageGate:
    def test_all_gates_must_allow(self):
        gate = CompositeUsageGate([FakeGate(True), FakeGate(False)])
        assert gate.can_send() is False

    def test_every_gate_is_consulted(self):
        first, second = FakeGate(False), FakeGate(True)
        CompositeUsageGate([first, second]).can_send()

        assert first.checks == 1
        assert second.checks == 1

    def test_record_usage_fans_out(self):
        first, second = FakeGate(), FakeGate()
        CompositeUsageGate([first, second]).record_usage()

        assert first.recorded == second.recorded == 1


class TestBuildUsageGate:
    def test_builds_from_settings(self):
        settings = MagicMock()
        settings.usage.free_messages_per_day = 2
        settings.usage.pro_access = False
        settings.usage.min_interval_seconds = 0.0
        settings.usage.max_messages_per_minute = 20

        gate = build_usage_gate(settings)

        assert gate.can_send() is True
        gate.record_usage()
        gate.record_usage()
        assert gate.can_send() is False
