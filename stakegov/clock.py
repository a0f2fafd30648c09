"""
Trusted time sources.

Ledger operations compare against Unix-epoch seconds read once per operation.
"""

import time


class SystemClock:
    """Wall-clock seconds."""

    def now(self) -> int:
        return int(time.time())

    def __repr__(self) -> str:
        return "<SystemClock>"


class ManualClock:
    """Clock that only moves when told to (simulations and tests)."""

    def __init__(self, start: int = 1_700_000_000):
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(f"Clock cannot move backwards ({timestamp} < {self._now})")
        self._now = int(timestamp)

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += int(seconds)
        return self._now

    def __repr__(self) -> str:
        return f"<ManualClock now={self._now}>"
