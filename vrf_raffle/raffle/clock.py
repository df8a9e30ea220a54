"""Round clock: last reset timestamp and the draw interval."""

from __future__ import annotations

import time
from typing import Callable

TimeSource = Callable[[], int]


def system_time() -> int:
    return int(time.time())


class RoundClock:
    """Answers whether a full interval has passed since the last reset."""

    def __init__(self, interval: int, time_source: TimeSource = system_time) -> None:
        self.interval = interval
        self._time_source = time_source
        self.last_reset = self.now()

    def now(self) -> int:
        return int(self._time_source())

    def has_interval_elapsed(self, now: int | None = None) -> bool:
        if now is None:
            now = self.now()
        return now - self.last_reset >= self.interval

    def mark_reset(self, now: int | None = None) -> None:
        self.last_reset = self.now() if now is None else now

    def seconds_remaining(self, now: int | None = None) -> int:
        if now is None:
            now = self.now()
        return max(0, self.last_reset + self.interval - now)
