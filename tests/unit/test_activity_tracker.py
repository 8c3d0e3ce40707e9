"""Unit tests for ActivityTracker."""

from datetime import timedelta

import pytest

from rental_bot.repositories.record_store import EntityType
from rental_bot.services.activity_tracker import ActivityTracker


@pytest.fixture
def tracker(cache, clock):
    return ActivityTracker(cache, clock, flush_every=3)


class TestRecordActivity:
    """Tests for message and join tracking"""

    def test_first_message_creates_record(self, tracker, clock):
        activity = tracker.record_activity("G1", "U1")

        assert activity.message_count == 1
        assert activity.first_seen == clock.now()
        assert activity.last_seen == clock.now()

    def test_messages_increment_and_first_seen_is_kept(self, tracker, clock):
        first = tracker.record_activity("G1", "U1")
        clock.advance(timedelta(minutes=5))
        activity = tracker.record_activity("G1", "U1")

        assert activity.message_count == 2
        assert activity.first_seen == first.first_seen
        assert activity.last_seen == clock.now()

    def test_join_does_not_count_as_message(self, tracker):
        activity = tracker.record_activity("G1", "U1", kind="join")
        assert activity.message_count == 0
        assert activity.last_seen is not None

    def test_unknown_kind_rejected(self, tracker):
        with pytest.raises(ValueError):
            tracker.record_activity("G1", "U1", kind="reaction")

    def test_members_are_tracked_per_group(self, tracker):
        tracker.record_activity("G1", "U1")
        tracker.record_activity("G2", "U1")

        assert tracker.get_activity("G1", "U1").message_count == 1
        assert tracker.get_activity("G2", "U1").message_count == 1
        assert tracker.get_activity("G3", "U1") is None


class TestFlushing:
    """Tests for periodic writes"""

    def test_flushes_every_n_messages(self, tracker, store, cache):
        tracker.record_activity("G1", "U1")
        tracker.record_activity("G1", "U1")
        assert store.read(EntityType.ACTIVITY) is None
        assert cache.is_dirty(EntityType.ACTIVITY)

        tracker.record_activity("G1", "U1")
        assert store.read(EntityType.ACTIVITY)["G1:U1"]["message_count"] == 3
        assert not cache.is_dirty(EntityType.ACTIVITY)

    def test_unflushed_activity_reaches_disk_on_flush_all(self, tracker, store, cache):
        tracker.record_activity("G1", "U1")
        cache.flush_all()
        assert store.read(EntityType.ACTIVITY)["G1:U1"]["message_count"] == 1

    def test_flush_every_must_be_positive(self, cache, clock):
        with pytest.raises(ValueError):
            ActivityTracker(cache, clock, flush_every=0)


class TestInactiveMembers:
    """Tests for finding inactive members"""

    def test_inactive_after_threshold(self, tracker, clock):
        tracker.record_activity("G1", "quiet")
        clock.advance(timedelta(days=5))
        tracker.record_activity("G1", "active")
        tracker.record_activity("G2", "elsewhere")
        clock.advance(timedelta(days=3))

        inactive = tracker.inactive_members("G1", days=7)

        assert [r.user_id for r in inactive] == ["quiet"]

    def test_sorted_least_recent_first(self, tracker, clock):
        tracker.record_activity("G1", "oldest")
        clock.advance(timedelta(days=1))
        tracker.record_activity("G1", "older")
        clock.advance(timedelta(days=10))

        assert [r.user_id for r in tracker.inactive_members("G1")] == ["oldest", "older"]

    def test_negative_days_rejected(self, tracker):
        with pytest.raises(ValueError):
            tracker.inactive_members("G1", days=-1)
