"""Tests for request context helpers."""

import pytest

from rental_bot.middleware import group_id_from_path


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/control/rentals/12036@g.us", "12036@g.us"),
        ("/control/rentals/12036@g.us/extend", "12036@g.us"),
        ("/control/groups/G1/settings", "G1"),
        ("/control/rentals/sweep", None),
        ("/control/rentals", None),
        ("/control/status", None),
        ("/", None),
    ],
)
def test_group_id_from_path(path, expected):
    assert group_id_from_path(path) == expected
