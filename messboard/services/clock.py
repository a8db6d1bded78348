# FILE: messboard/services/clock.py
"""
Wall-clock sources in milliseconds since epoch
"""
import time


class Clock:
    """Base clock"""

    def now_ms(self) -> int:
        raise NotImplementedError


class SystemClock(Clock):
    """Real wall clock"""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock(Clock):
    """Clock that only moves when told to"""

    def __init__(self, start_ms: int = 0):
        self._now = start_ms

    def now_ms(self) -> int:
        return self._now

    def set(self, now_ms: int) -> None:
        self._now = now_ms

    def advance(self, ms: int = 0, *, hours: float = 0, minutes: float = 0, seconds: float = 0) -> int:
        """Move forward and return the new instant"""
        self._now += int(ms + hours * 3_600_000 + minutes * 60_000 + seconds * 1000)
        return self._now
