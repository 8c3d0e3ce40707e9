"""Group metadata, per-group settings and user profiles."""

from typing import Any, Mapping, Optional

from pydantic import ValidationError

from rental_bot.logging_config import get_logger
from rental_bot.models.group import GroupRecord, UserRecord
from rental_bot.models.settings import GroupSettings, default_settings
from rental_bot.repositories.record_cache import Record, RecordCache
from rental_bot.repositories.record_store import EntityType
from rental_bot.services.clock import Clock
from rental_bot.state_logger import log_settings_change
from rental_bot.utils.merge import deep_merge
from rental_bot.utils.timestamps import to_iso

logger = get_logger(__name__)


class GroupDirectory:
    """Reads and writes group, settings and user records.

    Args:
        cache: record cache
        clock: time source
    """

    def __init__(self, cache: RecordCache, clock: Clock):
        self.cache = cache
        self.clock = clock

    def get_group(self, group_id: str) -> Optional[GroupRecord]:
        """Get a group's stored record, or None if it was never seen."""
        record = self.cache.get(EntityType.GROUPS, group_id)
        if record is None:
            return None
        return GroupRecord.model_validate(record)

    def observe_group(
        self,
        group_id: str,
        name: Optional[str] = None,
        participants: Optional[int] = None,
    ) -> GroupRecord:
        """Record fresh metadata for a group.

        Given fields are merged into the stored record and last_update is
        stamped. A group seen for the first time gets its join_date here and
        its trial starts with it; an existing join_date is never moved.

        Raises:
            PersistenceError: If the groups collection cannot be written
        """
        now = to_iso(self.clock.now())

        def observe(current: Optional[Record]) -> Record:
            changes: dict[str, Any] = {"id": group_id, "last_update": now, "updated_at": now}
            if name is not None:
                changes["name"] = name
            if participants is not None:
                changes["participants"] = participants
            if current is None or not current.get("join_date"):
                changes["join_date"] = now
                changes["trial_started"] = True
            return deep_merge(current or {}, changes)

        record = self.cache.update(EntityType.GROUPS, group_id, observe)
        logger.debug("group_observed", group_id=group_id, name=name, participants=participants)
        return GroupRecord.model_validate(record)

    def list_groups(self) -> list[GroupRecord]:
        return [GroupRecord.model_validate(r) for r in self.cache.values(EntityType.GROUPS)]

    def get_settings(self, group_id: str) -> GroupSettings:
        """Get a group's settings, or the baseline if none were stored."""
        record = self.cache.get(EntityType.SETTINGS, group_id)
        if record is None:
            return default_settings()
        return GroupSettings.model_validate(record)

    def update_settings(self, group_id: str, partial: Mapping[str, Any]) -> GroupSettings:
        """Merge a partial settings update over the group's current settings.

        Only the toggles named in partial change; the rest keep their current
        (or baseline) values.

        Args:
            group_id: Group identifier
            partial: Nested toggles, e.g. {"anti_spam": {"anti_link": True}}

        Returns:
            Settings after the update

        Raises:
            ValueError: If partial names an unknown section or toggle, or a value is not a boolean
            PersistenceError: If the settings collection cannot be written
        """
        now = self.clock.now()

        def merge(current: Optional[Record]) -> Record:
            base = current if current is not None else default_settings().to_record()
            merged = deep_merge(base, partial)
            merged["updated_at"] = to_iso(now)
            try:
                return GroupSettings.model_validate(merged).to_record()
            except ValidationError as e:
                raise ValueError(f"Invalid settings update for {group_id}: {e}") from e

        record = self.cache.update(EntityType.SETTINGS, group_id, merge)
        log_settings_change(group_id, dict(partial))
        return GroupSettings.model_validate(record)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        record = self.cache.get(EntityType.USERS, user_id)
        if record is None:
            return None
        return UserRecord.model_validate(record)

    def set_user(self, user_id: str, profile: Mapping[str, Any]) -> UserRecord:
        """Merge profile fields into a user's record (created if absent).

        Raises:
            PersistenceError: If the users collection cannot be written
        """
        record = self.cache.put(EntityType.USERS, user_id, {**profile, "id": user_id})
        return UserRecord.model_validate(record)
