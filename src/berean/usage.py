"""Usage gates consulted before a generation starts.

A gate answers ``can_send()`` synchronously and is told about every
successful generation through ``record_usage()``.
"""

import logging
import time
from datetime import date
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)


class UsageGate(Protocol):
    """Rate limiting collaborator for the generation coordinator."""

    def can_send(self) -> bool:
        ...

    def record_usage(self) -> None:
        ...


class DailyQuotaGate:
    """Free-tier daily message quota.

    Pro users are never limited and their usage is not counted. The count
    resets the first time the gate is consulted on a new calendar day.
    """

    FREE_MESSAGES_PER_DAY = 10

    def __init__(
        self,
        messages_per_day: int = FREE_MESSAGES_PER_DAY,
        pro_access: bool = False,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.messages_per_day = messages_per_day
        self.pro_access = pro_access
        self._today = today
        self._messages_used = 0
        self._last_reset: Optional[date] = None

    def can_send(self) -> bool:
        """Check whether the user is still under today's quota."""
        if self.pro_access:
            return True
        self._reset_if_new_day()
        return self._messages_used < self.messages_per_day

    def record_usage(self) -> None:
        """Count one completed generation against today's quota."""
        if self.pro_access:
            return
        self._reset_if_new_day()
        self._messages_used += 1
        logger.debug(f"Messages used: {self._messages_used}/{self.messages_per_day}")

    @property
    def messages_used(self) -> int:
        return self._messages_used

    @property
    def messages_remaining(self) -> int:
        """Messages left today (the full quota for pro users)."""
        if self.pro_access:
            return self.messages_per_day
        return max(0, self.messages_per_day - self._messages_used)

    def _reset_if_new_day(self) -> None:
        today = self._today()
        if self._last_reset is None or today > self._last_reset:
            if self._last_reset is not None:
                logger.info("Daily usage reset")
            self._messages_used = 0
            self._last_reset = today


class MessageRateLimiter:
    """Short-term throttle: a minimum gap between sends plus a per-minute cap."""

    WINDOW_SECONDS = 60.0

    def __init__(
        self,
        min_interval: float = 1.0,
        max_per_minute: int = 20,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_interval = min_interval
        self.max_per_minute = max_per_minute
        self._clock = clock
        self._last_message_time: Optional[float] = None
        self._message_count = 0
        self._window_start = clock()

    def can_send(self) -> bool:
        now = self._clock()

        if self._last_message_time is not None:
            if now - self._last_message_time < self.min_interval:
                return False

        if now - self._window_start > self.WINDOW_SECONDS:
            self._window_start = now
            self._message_count = 0

        return self._message_count < self.max_per_minute

    def record_usage(self) -> None:
        self._last_message_time = self._clock()
        self._message_count += 1

    def reset(self) -> None:
        self._last_message_time = None
        self._message_count = 0
        self._window_start = self._clock()


class CompositeUsageGate:
    """Approves a send only when every member gate approves it."""

    def __init__(self, gates: List[UsageGate]) -> None:
        self._gates = list(gates)

    def can_send(self) -> bool:
        # Evaluate every gate so each one can roll its own window forward.
        results = [gate.can_send() for gate in self._gates]
        return all(results)

    def record_usage(self) -> None:
        for gate in self._gates:
            gate.record_usage()


def build_usage_gate(settings) -> CompositeUsageGate:
    """Create the default quota + rate limiter gate from Settings."""
    usage = settings.usage
    return CompositeUsageGate(
        [
            DailyQuotaGate(
                messages_per_day=usage.free_messages_per_day,
                pro_access=usage.pro_access,
            ),
            MessageRateLimiter(
                min_interval=usage.min_interval_seconds,
                max_per_minute=usage.max_messages_per_minute,
            ),
        ]
    )
