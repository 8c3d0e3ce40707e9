"""Simple state change logging for rentals, trials and group settings.

Tracks transitions with before/after values for debugging and auditing.
"""

from datetime import datetime
from typing import Any, Optional

from rental_bot.logging_config import get_logger

logger = get_logger(__name__)


def log_rental_state_change(
    group_id: str,
    plan: str,
    old_status: Any,
    new_status: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log a rental status change.

    Args:
        group_id: Group the rental belongs to
        plan: Plan name
        old_status: Previous status (None for a new rental)
        new_status: New status (None for a deleted rental)
        reason: Reason for the change
        **extra_context: Additional context (end date, etc.)
    """
    logger.info(
        "rental_state_changed",
        group_id=group_id,
        plan=plan,
        old_status=str(old_status),
        new_status=str(new_status),
        reason=reason,
        **extra_context,
    )


def log_rental_expiry_change(
    group_id: str,
    plan: str,
    old_end_date: datetime,
    new_end_date: datetime,
    reason: str,
    **extra_context: Any,
) -> None:
    """Log a rental end date change.

    Args:
        group_id: Group the rental belongs to
        plan: Plan name
        old_end_date: Previous end date
        new_end_date: New end date
        reason: Reason for the change (extension, etc.)
        **extra_context: Additional context
    """
    logger.info(
        "rental_expiry_changed",
        group_id=group_id,
        plan=plan,
        old_end_date=old_end_date.isoformat(),
        new_end_date=new_end_date.isoformat(),
        extension_hours=(new_end_date - old_end_date).total_seconds() / 3600,
        reason=reason,
        **extra_context,
    )


def log_trial_granted(group_id: str, join_date: datetime, trial_hours: int) -> None:
    """Log the first-contact trial grant for a group."""
    logger.info(
        "trial_granted",
        group_id=group_id,
        join_date=join_date.isoformat(),
        trial_hours=trial_hours,
    )


def log_settings_change(
    group_id: str,
    changes: dict[str, Any],
    **extra_context: Any,
) -> None:
    """Log a group settings update.

    Args:
        group_id: Group whose settings changed
        changes: The partial update that was applied
        **extra_context: Additional context
    """
    logger.info(
        "group_settings_changed",
        group_id=group_id,
        changes=changes,
        **extra_context,
    )


def log_moderation_event(
    group_id: str,
    action: str,
    target: Optional[str] = None,
    reason: Optional[str] = None,
) -> None:
    """Log a moderation action taken in a group."""
    logger.info(
        "moderation_event",
        group_id=group_id,
        action=action,
        target=target,
        reason=reason,
    )
