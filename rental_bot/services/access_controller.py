"""Access decision for groups: active rental or running trial.

A group that was never seen before gets a trial on first contact. The trial
window starts at the group's join_date, which is written exactly once.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import ValidationError

from rental_bot.logging_config import get_logger
from rental_bot.models.config import RentalConfig
from rental_bot.models.group import GroupRecord
from rental_bot.repositories.record_cache import Record, RecordCache
from rental_bot.repositories.record_store import EntityType
from rental_bot.services.clock import Clock
from rental_bot.services.rental_manager import RentalManager
from rental_bot.state_logger import log_trial_granted
from rental_bot.utils.timestamps import parse_iso, to_iso

logger = get_logger(__name__)


class AccessController:
    """Decides whether a group may use the service.

    Args:
        cache: record cache holding the groups collection
        rentals: rental manager consulted first
        clock: time source
        rental_config: trial window and the rental system switch
    """

    def __init__(
        self,
        cache: RecordCache,
        rentals: RentalManager,
        clock: Clock,
        rental_config: Optional[RentalConfig] = None,
    ):
        self.cache = cache
        self.rentals = rentals
        self.clock = clock
        self.rental_config = rental_config or RentalConfig()

    @property
    def trial_window(self) -> timedelta:
        return timedelta(hours=self.rental_config.trial_hours)

    def has_access(self, group_id: str) -> bool:
        """Decide whether the group may use the service right now.

        An active rental grants access. Otherwise the trial decides: a group with
        a join_date has access while now - join_date <= trial window; a group
        without one gets its join_date set to now and is granted access. The
        check for join_date and its write happen under the groups lock, so two
        concurrent first contacts produce a single trial window.

        join_date is the group's first observation of any kind, so a group
        synced through GroupDirectory.observe_group before its first message
        has its trial running from the sync. A stored join_date that cannot be
        parsed denies access and is logged.

        Raises:
            PersistenceError: If the trial grant cannot be written
        """
        if not self.rental_config.enabled:
            return True

        if self.rentals.is_active(group_id):
            return True

        now = self.clock.now()
        granted: list[datetime] = []

        def grant_trial(current: Optional[Record]) -> Optional[Record]:
            if current is not None and current.get("join_date"):
                return None
            record: dict[str, Any] = dict(current or {})
            record.update(
                id=group_id,
                join_date=to_iso(now),
                trial_started=True,
                updated_at=to_iso(now),
            )
            granted.append(now)
            return record

        record = self.cache.update(EntityType.GROUPS, group_id, grant_trial)

        if granted:
            log_trial_granted(group_id, granted[0], self.rental_config.trial_hours)
            return True

        try:
            join_date = parse_iso(record["join_date"])
        except ValueError:
            logger.warning("group_join_date_invalid", group_id=group_id, join_date=str(record["join_date"]))
            return False
        in_trial = now - join_date <= self.trial_window
        if not in_trial:
            logger.debug("access_denied", group_id=group_id, join_date=join_date.isoformat())
        return in_trial

    def trial_status(self, group_id: str) -> dict[str, Any]:
        """Report the group's trial without granting one.

        Returns:
            Dictionary with:
                - join_date: first observation (None if never seen)
                - trial_ends_at: end of the trial window (None if never seen)
                - in_trial: whether the trial is still running
                - rental_active: whether an active rental exists
        """
        now = self.clock.now()
        record = self.cache.get(EntityType.GROUPS, group_id)
        group: Optional[GroupRecord] = None
        if record is not None:
            try:
                group = GroupRecord.model_validate(record)
            except ValidationError:
                logger.warning("group_record_invalid", group_id=group_id)
        join_date = group.join_date if group is not None else None
        trial_ends_at = join_date + self.trial_window if join_date is not None else None

        return {
            "join_date": join_date,
            "trial_ends_at": trial_ends_at,
            "in_trial": join_date is not None and now - join_date <= self.trial_window,
            "rental_active": self.rentals.is_active(group_id),
        }
