"""
Clock -- the only source of wall time in the ledger.

The store stamps ``opened_at``, ``closed_at``, ``computed_at`` and
``ingested_at`` from an injected ``Clock``; the close orchestrator stamps
signatures the same way.  Engines never see a clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

LEDGER_EPOCH_ZERO = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Returns timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests and replays.

    Time only moves on ``advance()`` or ``tick()``, so two rows stamped
    without an advance in between share a timestamp.
    """

    def __init__(self, start: datetime | None = None):
        start = start or LEDGER_EPOCH_ZERO
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start")
        self._current = start.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: int = 1) -> None:
        if seconds < 0:
            raise ValueError("a ledger clock never runs backwards")
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        self.advance(1)
        return self._current
