"""Timestamp helpers for stored records and backup directory names.

Records store timestamps as ISO 8601 strings in UTC, e.g. "2026-10-19T08:00:00Z".
Backup directories are named with a sortable stamp, e.g. "2026-10-19_08-00-00".
"""

from datetime import datetime, timezone
from typing import Optional

BACKUP_STAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def ensure_utc(value: datetime) -> datetime:
    """Return value as a timezone-aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format a datetime for storage.

    Args:
        value: Datetime to format (naive values are treated as UTC)

    Returns:
        ISO 8601 string with a "Z" suffix (the form pydantic emits for UTC)
    """
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO 8601 timestamp.

    Accepts the trailing "Z" form as well as explicit offsets.

    Args:
        value: Stored timestamp, or None

    Returns:
        UTC datetime, or None if value is empty

    Raises:
        ValueError: If value is not a valid ISO 8601 timestamp
    """
    if not value:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO 8601 string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


def format_backup_stamp(value: datetime) -> str:
    """Format a datetime as a backup directory name."""
    return ensure_utc(value).strftime(BACKUP_STAMP_FORMAT)


def parse_backup_stamp(name: str) -> Optional[datetime]:
    """Parse a backup directory name back into a UTC datetime.

    Returns:
        Datetime the backup was taken, or None if the name is not a backup stamp
    """
    try:
        return datetime.strptime(name, BACKUP_STAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None
