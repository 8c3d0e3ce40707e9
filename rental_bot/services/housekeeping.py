"""Periodic maintenance actions run by the scheduler.

Each action is a plain method so it can also be triggered manually from the
control API or from tests.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from rental_bot.logging_config import LOG_FILE_NAME, get_logger
from rental_bot.models.config import AppConfig
from rental_bot.repositories.record_cache import RecordCache
from rental_bot.services.clock import Clock
from rental_bot.services.messenger import Messenger
from rental_bot.services.rate_limiter import FixedWindowRateLimiter
from rental_bot.services.rental_manager import RentalManager

logger = get_logger(__name__)


class Housekeeping:
    """Rental sweep, backups, retention and rate-limit cleanup.

    Args:
        cache: record cache (its store receives the snapshots)
        rentals: rental manager
        messenger: sender for expiry warnings
        rate_limiter: throttle whose windows are cleared
        clock: time source
        config: application configuration
    """

    def __init__(
        self,
        cache: RecordCache,
        rentals: RentalManager,
        messenger: Messenger,
        rate_limiter: FixedWindowRateLimiter,
        clock: Clock,
        config: Optional[AppConfig] = None,
    ):
        self.cache = cache
        self.rentals = rentals
        self.messenger = messenger
        self.rate_limiter = rate_limiter
        self.clock = clock
        self.config = config or AppConfig()

    def check_rentals(self) -> dict[str, int]:
        """Expire overdue rentals and warn groups whose rental ends soon.

        A group is warned once per end date; extending the rental re-arms the
        warning. A warning that could not be sent is retried on the next run.

        Returns:
            Dictionary with expired and warned counts
        """
        expired = self.rentals.sweep_expired()

        now = self.clock.now()
        warned = 0
        for rental in self.rentals.expiring_within(self.config.rental.expiry_warning_hours):
            if rental.expiry_warned_for == rental.end_date:
                continue
            if self.messenger.notify_expiring_rental(rental, now):
                self.rentals.mark_expiry_warned(rental.group_id, rental.end_date)
                warned += 1
                logger.info(
                    "rental_expiry_warning_sent",
                    group_id=rental.group_id,
                    end_date=rental.end_date.isoformat(),
                )

        return {"expired": expired, "warned": warned}

    def backup(self) -> dict[str, Any]:
        """Flush dirty collections, snapshot them and prune old backups.

        Raises:
            PersistenceError: If a flush or the snapshot fails
        """
        flushed = self.cache.flush_all()
        now = self.clock.now()
        store = self.cache.store
        target = store.create_snapshot(now)
        pruned = store.prune_snapshots(now, self.config.storage.backup_retention_days)
        return {"backup": target.name, "flushed": flushed, "pruned": pruned}

    def trim_retention(self) -> dict[str, list[str]]:
        """Delete old log files and prune old backups.

        Returns:
            Dictionary with removed log file names and removed backup names
        """
        now = self.clock.now()
        logs = self._remove_old_logs(now)
        backups = self.cache.store.prune_snapshots(now, self.config.storage.backup_retention_days)
        return {"logs": logs, "backups": backups}

    def clear_rate_limits(self) -> int:
        return self.rate_limiter.reset()

    def _remove_old_logs(self, now: datetime) -> list[str]:
        log_dir: Optional[Path] = self.config.logging.log_dir
        if log_dir is None or not Path(log_dir).is_dir():
            return []

        cutoff = now - timedelta(days=self.config.logging.retention_days)
        removed: list[str] = []
        for path in sorted(Path(log_dir).glob(f"{LOG_FILE_NAME}*")):
            try:
                modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
                if modified < cutoff:
                    path.unlink()
                    removed.append(path.name)
            except OSError as e:
                logger.warning("log_cleanup_failed", file=path.name, error=str(e))

        if removed:
            logger.info("old_logs_removed", count=len(removed), retention_days=self.config.logging.retention_days)
        return removed
