"""Injectable clocks.

Everything in the scoring engine that needs "now" asks a clock instead of
reading the system time, so tests can pin time and move it forward.
"""

import time
from datetime import datetime
from typing import Protocol

import pytz

MS_PER_DAY = 24 * 60 * 60 * 1000


class Clock(Protocol):
    """Source of the current time in epoch milliseconds."""

    def now_ms(self) -> int: ...


class SystemClock:
    """Wall-clock time."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class FixedClock:
    """Clock pinned to an explicit instant. Only moves when told to."""

    def __init__(self, now_ms: int):
        self._now_ms = now_ms

    def now_ms(self) -> int:
        return self._now_ms

    def set(self, now_ms: int) -> None:
        self._now_ms = now_ms

    def advance(self, ms: int = 0, *, seconds: float = 0, days: float = 0) -> None:
        """Move the clock forward."""
        self._now_ms += ms + int(seconds * 1000) + int(days * MS_PER_DAY)


def days_ago(now_ms: int, days: float) -> int:
    """Epoch-ms timestamp `days` before `now_ms`."""
    return now_ms - int(days * MS_PER_DAY)


def epoch_ms_to_iso(ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC timestamp."""
    return datetime.fromtimestamp(ms / 1000, tz=pytz.utc).isoformat()


def iso_to_epoch_ms(value: str) -> int:
    """
    Parse an ISO-8601 date or datetime into epoch milliseconds.

    Naive values are treated as UTC.

    Raises:
        ValueError: If the string is not ISO-8601
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = pytz.utc.localize(parsed)
    return int(parsed.timestamp() * 1000)
