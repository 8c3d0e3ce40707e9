"""Per-member activity counters.

Activity changes on every group message, so records are written to disk only
every `flush_every` messages of a member. The remaining changes reach disk on
the next backup or at shutdown through RecordCache.flush_all().
"""

from datetime import datetime, timedelta
from typing import Optional

from rental_bot.logging_config import get_logger
from rental_bot.models.group import ActivityRecord, activity_key
from rental_bot.repositories.record_cache import Record, RecordCache
from rental_bot.repositories.record_store import EntityType
from rental_bot.services.clock import Clock

logger = get_logger(__name__)

ACTIVITY_MESSAGE = "message"
ACTIVITY_JOIN = "join"
DEFAULT_INACTIVE_DAYS = 7


class ActivityTracker:
    """Tracks message counts and last activity of group members.

    Args:
        cache: record cache holding the activity collection
        clock: time source
        flush_every: write activity to disk every N messages of a member
    """

    def __init__(self, cache: RecordCache, clock: Clock, flush_every: int = 10):
        if flush_every <= 0:
            raise ValueError("flush_every must be positive")
        self.cache = cache
        self.clock = clock
        self.flush_every = flush_every

    def record_activity(self, group_id: str, user_id: str, kind: str = ACTIVITY_MESSAGE) -> ActivityRecord:
        """Record a message or a join of a member.

        The record is created on first reference with first_seen set. A message
        increments message_count; a join only stamps last_seen.

        Args:
            group_id: Group identifier
            user_id: Member identifier
            kind: "message" or "join"

        Returns:
            Activity record after the update

        Raises:
            ValueError: If kind is unknown
            PersistenceError: If a periodic flush fails
        """
        if kind not in (ACTIVITY_MESSAGE, ACTIVITY_JOIN):
            raise ValueError(f"Unknown activity kind: {kind}")

        now = self.clock.now()

        def touch(current: Optional[Record]) -> Record:
            if current is None:
                activity = ActivityRecord(group_id=group_id, user_id=user_id, first_seen=now)
            else:
                activity = ActivityRecord.model_validate(current)
            count = activity.message_count + (1 if kind == ACTIVITY_MESSAGE else 0)
            return activity.model_copy(update={"message_count": count, "last_seen": now}).to_record()

        key = activity_key(group_id, user_id)
        record = self.cache.update(EntityType.ACTIVITY, key, touch, persist=False)
        activity = ActivityRecord.model_validate(record)

        if kind == ACTIVITY_MESSAGE and activity.message_count % self.flush_every == 0:
            self.cache.flush(EntityType.ACTIVITY)
            logger.debug("activity_flushed", group_id=group_id, user_id=user_id, count=activity.message_count)

        return activity

    def get_activity(self, group_id: str, user_id: str) -> Optional[ActivityRecord]:
        record = self.cache.get(EntityType.ACTIVITY, activity_key(group_id, user_id))
        if record is None:
            return None
        return ActivityRecord.model_validate(record)

    def group_activity(self, group_id: str) -> list[ActivityRecord]:
        """All activity records of a group."""
        records = [ActivityRecord.model_validate(r) for r in self.cache.values(EntityType.ACTIVITY)]
        return [r for r in records if r.group_id == group_id]

    def inactive_members(self, group_id: str, days: int = DEFAULT_INACTIVE_DAYS) -> list[ActivityRecord]:
        """Members of a group whose last activity is older than `days`.

        Returns:
            Matching records, least recently active first
        """
        if days < 0:
            raise ValueError("days must not be negative")
        cutoff = self.clock.now() - timedelta(days=days)

        def last_active(record: ActivityRecord) -> datetime:
            return record.last_seen or record.first_seen or datetime.min.replace(tzinfo=cutoff.tzinfo)

        inactive = [r for r in self.group_activity(group_id) if last_active(r) < cutoff]
        return sorted(inactive, key=last_active)
