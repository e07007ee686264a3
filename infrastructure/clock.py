"""Clock implementations"""
from datetime import date, datetime, time, timedelta
from typing import Optional

from domain.clock import Clock


class SystemClock(Clock):
    """Wall-clock time (local)"""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """Manually controlled clock for tests and simulations"""

    def __init__(self, current: datetime):
        self._current = current

    @classmethod
    def on(cls, day: date, at: Optional[time] = None) -> "FixedClock":
        return cls(datetime.combine(day, at or time(12, 0)))

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = current

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self._current += timedelta(days=days, hours=hours)
