"""Unit tests for the clocks."""

from datetime import datetime, timedelta, timezone

import pytest

from rental_bot.services.clock import SystemClock, VirtualClock


class TestSystemClock:
    """Tests for the wall clock"""

    def test_now_is_utc_aware(self):
        now = SystemClock().now()
        assert now.tzinfo is not None
        assert now.utcoffset() == timedelta(0)

    def test_now_millis_close_to_real_time(self):
        real = int(datetime.now(timezone.utc).timestamp() * 1000)
        assert abs(SystemClock().now_millis() - real) < 1000


class TestVirtualClock:
    """Tests for the manually driven clock"""

    def test_starts_at_given_time(self, clock):
        assert clock.now() == datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)

    def test_time_does_not_move_by_itself(self, clock):
        """Two reads without advancing give the same instant"""
        assert clock.now() == clock.now()

    def test_naive_start_is_treated_as_utc(self):
        clock = VirtualClock(datetime(2026, 1, 1, 12, 0))
        assert clock.now() == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_advance_moves_forward_and_tracks_offset(self, clock):
        before = clock.now()
        after = clock.advance(timedelta(hours=5))

        assert after - before == timedelta(hours=5)
        assert clock.now() == after
        assert clock.offset == timedelta(hours=5)

    def test_advance_rejects_negative(self, clock):
        with pytest.raises(ValueError):
            clock.advance(timedelta(seconds=-1))

    def test_set_time_forward(self, clock):
        target = clock.now() + timedelta(days=2)
        assert clock.set_time(target) == target
        assert clock.offset == timedelta(days=2)

    def test_set_time_backwards_rejected(self, clock):
        with pytest.raises(ValueError, match="backwards"):
            clock.set_time(clock.now() - timedelta(minutes=1))

    def test_reset_returns_to_real_time(self, clock):
        clock.advance(timedelta(days=30))
        clock.reset()

        real = datetime.now(timezone.utc)
        assert abs((clock.now() - real).total_seconds()) < 1
        assert clock.offset == timedelta(0)

    def test_now_millis(self, clock):
        assert clock.now_millis() == int(clock.now().timestamp()) * 1000

    def test_now_millis_is_exact(self, clock):
        before = clock.now_millis()
        clock.advance(timedelta(milliseconds=60_001))
        assert clock.now_millis() - before == 60_001
