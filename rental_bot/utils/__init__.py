"""Utility functions and helpers."""

from rental_bot.utils.merge import deep_merge
from rental_bot.utils.timestamps import (
    BACKUP_STAMP_FORMAT,
    ensure_utc,
    format_backup_stamp,
    parse_backup_stamp,
    parse_iso,
    to_iso,
)

__all__ = [
    # Record merging
    "deep_merge",
    # Timestamps
    "BACKUP_STAMP_FORMAT",
    "ensure_utc",
    "to_iso",
    "parse_iso",
    "format_backup_stamp",
    "parse_backup_stamp",
]
