"""
Injectable time source.

Nothing in the kernel calls ``datetime.now()``.  Stage timestamps
(started_at, approved_at, assigned_at, evidence_attached_at), event times,
the year in an order code, evidence object keys and "today" for due-date
badges all come from a Clock the caller passes in.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware UTC now."""

    def today(self) -> date:
        return self.now().date()

    def epoch_millis(self) -> int:
        return int(self.now().timestamp() * 1000)


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen clock for tests; moves only through ``advance`` or ``set_time``."""

    DEFAULT_START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        self._current = start or self.DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)
