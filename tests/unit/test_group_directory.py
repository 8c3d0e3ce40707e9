"""Unit tests for GroupDirectory."""

from datetime import timedelta

import pytest

from rental_bot.models.settings import default_settings
from rental_bot.repositories.record_cache import RecordCache
from rental_bot.repositories.record_store import EntityType
from rental_bot.services.group_directory import GroupDirectory


@pytest.fixture
def directory(cache, clock):
    return GroupDirectory(cache, clock)


class TestGroups:
    """Tests for group metadata"""

    def test_unknown_group(self, directory):
        assert directory.get_group("G1") is None

    def test_observe_sets_join_date_once(self, directory, clock):
        first = directory.observe_group("G1", name="Chat", participants=10)
        clock.advance(timedelta(hours=3))
        second = directory.observe_group("G1", participants=12)

        assert first.join_date == second.join_date
        assert second.name == "Chat"
        assert second.participants == 12
        assert second.last_update == clock.now()

    def test_first_observation_starts_trial(self, directory, cache):
        group = directory.observe_group("G1", name="Chat")

        assert group.trial_started is True
        assert cache.get(EntityType.GROUPS, "G1")["trial_started"] is True

    def test_observe_keeps_existing_join_date(self, directory, cache, clock):
        cache.put(EntityType.GROUPS, "G1", {"join_date": "2026-01-01T00:00:00Z"})
        group = directory.observe_group("G1", name="Chat")
        assert group.join_date.year == 2026 and group.join_date.month == 1

    def test_list_groups(self, directory):
        directory.observe_group("G1")
        directory.observe_group("G2")
        assert {g.id for g in directory.list_groups()} == {"G1", "G2"}


class TestSettings:
    """Tests for per-group settings"""

    def test_missing_settings_return_baseline(self, directory, cache):
        assert directory.get_settings("G1") == default_settings()
        assert cache.get(EntityType.SETTINGS, "G1") is None

    def test_baseline_is_all_off(self):
        settings = default_settings()
        assert not any(settings.anti_spam.model_dump().values())
        assert not any(settings.moderation.model_dump().values())

    def test_partial_update_merges_over_baseline(self, directory):
        settings = directory.update_settings("G1", {"anti_spam": {"anti_link": True}})

        assert settings.anti_spam.anti_link is True
        assert settings.anti_spam.anti_call is False
        assert settings.moderation.welcome is False

    def test_successive_updates_merge(self, directory):
        directory.update_settings("G1", {"anti_spam": {"anti_link": True}})
        directory.update_settings("G1", {"anti_spam": {"anti_call": True}, "moderation": {"welcome": True}})

        settings = directory.get_settings("G1")
        assert settings.anti_spam.anti_link is True
        assert settings.anti_spam.anti_call is True
        assert settings.moderation.welcome is True

    def test_unknown_toggle_rejected_without_change(self, directory, cache):
        directory.update_settings("G1", {"anti_spam": {"anti_link": True}})

        with pytest.raises(ValueError):
            directory.update_settings("G1", {"anti_spam": {"anti_everything": True}})
        with pytest.raises(ValueError):
            directory.update_settings("G1", {"unknown_section": {}})

        assert directory.get_settings("G1").anti_spam.anti_link is True

    def test_settings_survive_reload(self, directory, store, clock):
        directory.update_settings("G1", {"moderation": {"farewell": True}})

        fresh = RecordCache(store, clock)
        fresh.load()
        assert GroupDirectory(fresh, clock).get_settings("G1").moderation.farewell is True


class TestUsers:
    """Tests for user profiles"""

    def test_set_and_get_user(self, directory):
        directory.set_user("U1", {"name": "Ann"})
        directory.set_user("U1", {"lang": "ru"})

        user = directory.get_user("U1")
        assert user.id == "U1"
        assert user.model_extra == {"name": "Ann", "lang": "ru"}

    def test_unknown_user(self, directory):
        assert directory.get_user("U404") is None
