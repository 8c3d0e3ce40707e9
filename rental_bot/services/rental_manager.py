"""Rental lifecycle state machine.

Responsibilities:
- Create rentals (explicit duration or configured plan)
- Extend rentals (additive to the current end date)
- Answer whether a group's rental is active
- Sweep expired rentals and find rentals about to expire
- Delete rentals

States per group: no rental -> active -> expired. An expired rental only
becomes active again through a new create, which replaces the record.
"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError

from rental_bot.logging_config import get_logger
from rental_bot.models.config import RentalConfig
from rental_bot.models.rental import RentalRecord, RentalStatus
from rental_bot.repositories.record_cache import Record, RecordCache
from rental_bot.repositories.record_store import EntityType
from rental_bot.services.clock import Clock
from rental_bot.state_logger import log_rental_expiry_change, log_rental_state_change

logger = get_logger(__name__)


class RentalError(Exception):
    """Base exception for rental errors."""

    pass


class InvalidDurationError(RentalError, ValueError):
    """Raised when a rental duration or extension is not strictly positive."""

    pass


class UnknownPlanError(RentalError):
    """Raised when a plan key is not configured."""

    pass


def _require_positive_hours(hours: float, what: str) -> None:
    if hours <= 0:
        raise InvalidDurationError(f"{what} must be a positive number of hours, got {hours}")


def _parse_rental(group_id: str, record: Record) -> Optional[RentalRecord]:
    """Validate a stored rental; a malformed record is logged and reads as absent."""
    try:
        return RentalRecord.model_validate(record)
    except ValidationError as e:
        logger.warning("rental_record_invalid", group_id=group_id, errors=e.error_count())
        return None


class RentalManager:
    """Rental lifecycle management.

    Absence of a rental is never an error here: lookups return None or False.
    Store write failures propagate as PersistenceError.

    Args:
        cache: record cache holding the rentals collection
        clock: time source
        rental_config: plan definitions used by create_from_plan
    """

    def __init__(
        self,
        cache: RecordCache,
        clock: Clock,
        rental_config: Optional[RentalConfig] = None,
    ):
        self.cache = cache
        self.clock = clock
        self.rental_config = rental_config or RentalConfig()

        logger.info("rental_manager_initialized", plans=list(self.rental_config.plans.keys()))

    def create_rental(self, group_id: str, plan: str, duration_hours: float) -> RentalRecord:
        """Create a rental starting now, replacing any previous rental of the group.

        Args:
            group_id: Group identifier
            plan: Plan name stored on the rental
            duration_hours: Rental length in hours

        Returns:
            Created RentalRecord

        Raises:
            InvalidDurationError: If duration_hours is not positive
            PersistenceError: If the rentals collection cannot be written
        """
        _require_positive_hours(duration_hours, "Rental duration")

        now = self.clock.now()
        previous = self.get_rental(group_id)
        rental = RentalRecord(
            group_id=group_id,
            plan=plan,
            start_date=now,
            end_date=now + timedelta(hours=duration_hours),
            status=RentalStatus.ACTIVE,
            created_at=now,
        )

        self.cache.replace(EntityType.RENTALS, group_id, rental.to_record())

        log_rental_state_change(
            group_id=group_id,
            plan=plan,
            old_status=previous.status.value if previous else None,
            new_status=rental.status.value,
            reason="Rental created",
            end_date=rental.end_date.isoformat(),
            duration_hours=duration_hours,
        )
        return rental

    def create_from_plan(self, group_id: str, plan_key: str) -> RentalRecord:
        """Create a rental using a configured plan's duration.

        Raises:
            UnknownPlanError: If plan_key is not configured
        """
        plan = self.rental_config.plans.get(plan_key)
        if plan is None:
            raise UnknownPlanError(f"Plan '{plan_key}' is not configured")
        return self.create_rental(group_id, plan_key, plan.duration_hours)

    def extend_rental(self, group_id: str, hours: float) -> Optional[RentalRecord]:
        """Add hours to the rental's current end date.

        The extension is added to the stored end date, not to now, even if the
        end date is already in the past. Status is left as it is.

        Args:
            group_id: Group identifier
            hours: Hours to add

        Returns:
            Updated RentalRecord, or None if the group has no rental

        Raises:
            InvalidDurationError: If hours is not positive
            PersistenceError: If the rentals collection cannot be written
        """
        _require_positive_hours(hours, "Extension")

        now = self.clock.now()
        previous: dict[str, RentalRecord] = {}

        def extend(current: Optional[Record]) -> Optional[Record]:
            rental = _parse_rental(group_id, current) if current is not None else None
            if rental is None:
                return None
            previous["rental"] = rental
            extended = rental.model_copy(
                update={
                    "end_date": rental.end_date + timedelta(hours=hours),
                    "updated_at": now,
                }
            )
            return extended.to_record()

        updated = self.cache.update(EntityType.RENTALS, group_id, extend)
        if not previous:
            logger.info("rental_extend_skipped_no_rental", group_id=group_id, hours=hours)
            return None

        rental = RentalRecord.model_validate(updated)
        log_rental_expiry_change(
            group_id=group_id,
            plan=rental.plan,
            old_end_date=previous["rental"].end_date,
            new_end_date=rental.end_date,
            reason="Rental extended",
        )
        return rental

    def get_rental(self, group_id: str) -> Optional[RentalRecord]:
        """Get a group's rental, or None if it has none or the stored record is malformed."""
        record = self.cache.get(EntityType.RENTALS, group_id)
        if record is None:
            return None
        return _parse_rental(group_id, record)

    def list_rentals(self, status: Optional[RentalStatus] = None) -> list[RentalRecord]:
        """Get all rentals, optionally filtered by status. Malformed records are skipped."""
        parsed = (_parse_rental(key, r) for key, r in self.cache.get_all(EntityType.RENTALS).items())
        rentals = [r for r in parsed if r is not None]
        if status is not None:
            rentals = [r for r in rentals if r.status == status]
        return rentals

    def is_active(self, group_id: str) -> bool:
        """True iff the group has a rental, it is active, and now is before its end date.

        Reads only the cache; no mutation, no persistence.
        """
        rental = self.get_rental(group_id)
        if rental is None:
            return False
        return rental.is_active_at(self.clock.now())

    def time_remaining(self, group_id: str) -> Optional[timedelta]:
        """Time left on the group's rental (zero if past), or None without a rental."""
        rental = self.get_rental(group_id)
        if rental is None:
            return None
        return rental.time_remaining(self.clock.now())

    def sweep_expired(self) -> int:
        """Flip every active rental whose end date has passed to expired.

        The collection is written once if anything changed. Running the sweep
        again without time passing changes nothing.

        Returns:
            Number of rentals expired by this sweep

        Raises:
            PersistenceError: If the rentals collection cannot be written
        """
        now = self.clock.now()
        expired: list[RentalRecord] = []

        def expire(group_id: str, record: Record) -> Optional[Record]:
            rental = _parse_rental(group_id, record)
            if rental is None or not rental.is_due_for_expiry(now):
                return None
            rental = rental.model_copy(
                update={
                    "status": RentalStatus.EXPIRED,
                    "deactivated_at": now,
                    "updated_at": now,
                }
            )
            expired.append(rental)
            return rental.to_record()

        self.cache.update_all(EntityType.RENTALS, expire)

        for rental in expired:
            log_rental_state_change(
                group_id=rental.group_id,
                plan=rental.plan,
                old_status=RentalStatus.ACTIVE.value,
                new_status=RentalStatus.EXPIRED.value,
                reason="End date passed",
                end_date=rental.end_date.isoformat(),
            )

        if expired:
            logger.info("rentals_expired", count=len(expired))
        return len(expired)

    def expiring_within(self, hours: float) -> list[RentalRecord]:
        """Active rentals whose end date falls before now + hours. No mutation."""
        cutoff = self.clock.now() + timedelta(hours=hours)
        return [
            rental
            for rental in self.list_rentals(status=RentalStatus.ACTIVE)
            if rental.end_date < cutoff
        ]

    def mark_expiry_warned(self, group_id: str, end_date: datetime) -> bool:
        """Remember that a warning was sent for this end date.

        Ignored if the rental was replaced or extended in the meantime.

        Returns:
            True if the marker was stored
        """
        stored: list[bool] = []

        def mark(current: Optional[Record]) -> Optional[Record]:
            rental = _parse_rental(group_id, current) if current is not None else None
            if rental is None or rental.end_date != end_date:
                return None
            stored.append(True)
            return rental.model_copy(update={"expiry_warned_for": end_date}).to_record()

        self.cache.update(EntityType.RENTALS, group_id, mark)
        return bool(stored)

    def delete_rental(self, group_id: str) -> bool:
        """Remove a group's rental unconditionally.

        Returns:
            True if a rental was removed, False if there was none
        """
        rental = self.get_rental(group_id)
        deleted = self.cache.delete(EntityType.RENTALS, group_id)
        if deleted and rental is not None:
            log_rental_state_change(
                group_id=group_id,
                plan=rental.plan,
                old_status=rental.status.value,
                new_status=None,
                reason="Rental deleted",
            )
        return deleted

    def get_statistics(self) -> dict[str, int]:
        """Rental counts by status."""
        rentals = self.list_rentals()
        now = self.clock.now()
        return {
            "total_rentals": len(rentals),
            "active": sum(1 for r in rentals if r.status == RentalStatus.ACTIVE),
            "expired": sum(1 for r in rentals if r.status == RentalStatus.EXPIRED),
            "currently_valid": sum(1 for r in rentals if r.is_active_at(now)),
        }
