from __future__ import annotations

from datetime import datetime, timedelta, timezone

HISTORY_EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """`date_time_factory` stand-in; time only moves on `advance()` or `tick`."""

    def __init__(self, start: datetime = HISTORY_EPOCH, tick: timedelta = timedelta(0)):
        self._current = start
        self._tick = tick

    def now(self) -> datetime:
        value = self._current
        self._current += self._tick
        return value

    def advance(self, delta: timedelta) -> None:
        self._current += delta
