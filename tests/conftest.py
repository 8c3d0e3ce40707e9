"""Shared fixtures: a virtual clock and storage under tmp_path."""

from datetime import datetime, timezone

import pytest

from rental_bot.repositories.record_cache import RecordCache
from rental_bot.repositories.record_store import RecordStore
from rental_bot.services.clock import VirtualClock

START = datetime(2026, 10, 19, 8, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Virtual clock fixed at 2026-10-19 08:00 UTC (a Monday)."""
    return VirtualClock(START)


@pytest.fixture
def store(tmp_path):
    """Initialized record store in a temporary directory."""
    record_store = RecordStore(tmp_path / "database")
    record_store.initialize()
    return record_store


@pytest.fixture
def cache(store, clock):
    """Empty, loaded record cache backed by the temporary store."""
    record_cache = RecordCache(store, clock)
    record_cache.load()
    return record_cache
