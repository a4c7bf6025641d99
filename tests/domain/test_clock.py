"""Tests for the injectable ledger clocks."""

from datetime import datetime, timedelta, timezone

import pytest

from ledger_kernel.domain.clock import LEDGER_EPOCH_ZERO, DeterministicClock, SystemClock


class TestDeterministicClock:

    def test_frozen_until_advanced(self):
        clock = DeterministicClock()

        assert clock.now() == clock.now() == LEDGER_EPOCH_ZERO

    def test_advance_and_tick(self):
        clock = DeterministicClock()

        clock.advance(60)
        assert clock.now() == LEDGER_EPOCH_ZERO + timedelta(seconds=60)
        assert clock.tick() == LEDGER_EPOCH_ZERO + timedelta(seconds=61)

    def test_start_normalized_to_utc(self):
        start = datetime(2026, 3, 1, 9, 0, tzinfo=timezone(timedelta(hours=-5)))

        now = DeterministicClock(start).now()

        assert now == start
        assert now.utcoffset() == timedelta(0)

    def test_naive_start_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            DeterministicClock(datetime(2026, 1, 1))

    def test_never_runs_backwards(self):
        with pytest.raises(ValueError):
            DeterministicClock().advance(-1)


class TestSystemClock:

    def test_aware_utc(self):
        assert SystemClock().now().tzinfo is timezone.utc
