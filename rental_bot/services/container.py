"""Service wiring.

All services are built once per application from the configuration and share
a single clock, record store and cache.
"""

from dataclasses import dataclass
from typing import Optional

from rental_bot.logging_config import get_logger
from rental_bot.models.config import AppConfig
from rental_bot.repositories.record_cache import RecordCache
from rental_bot.repositories.record_store import RecordStore
from rental_bot.services.access_controller import AccessController
from rental_bot.services.activity_tracker import ActivityTracker
from rental_bot.services.clock import Clock, SystemClock, VirtualClock
from rental_bot.services.event_router import EventRouter
from rental_bot.services.group_directory import GroupDirectory
from rental_bot.services.housekeeping import Housekeeping
from rental_bot.services.messenger import Messenger, Transport
from rental_bot.services.rate_limiter import FixedWindowRateLimiter
from rental_bot.services.rental_manager import RentalManager
from rental_bot.services.scheduler import PeriodicScheduler, default_jobs
from rental_bot.services.time_controller import TimeController

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Everything the API and the transport adapter need."""

    config: AppConfig
    clock: Clock
    store: RecordStore
    cache: RecordCache
    rentals: RentalManager
    access: AccessController
    rate_limiter: FixedWindowRateLimiter
    groups: GroupDirectory
    activity: ActivityTracker
    messenger: Messenger
    router: EventRouter
    housekeeping: Housekeeping
    scheduler: PeriodicScheduler
    time_controller: Optional[TimeController] = None

    def start(self) -> dict[str, int]:
        """Create the storage directories, load the cache and start the scheduler.

        Returns:
            Record count per entity type

        Raises:
            StorageInitializationError: If the storage directories cannot be created
        """
        self.store.initialize()
        counts = self.cache.load()
        self.scheduler.start()
        return counts

    def stop(self) -> None:
        """Stop the scheduler, then flush and back up everything."""
        self.scheduler.shutdown()
        self.housekeeping.backup()


def build_services(
    config: Optional[AppConfig] = None,
    clock: Optional[Clock] = None,
    transport: Optional[Transport] = None,
) -> ServiceContainer:
    """Build all services for one application instance.

    Args:
        config: application configuration (defaults apply when omitted)
        clock: time source, the wall clock by default; a VirtualClock enables time control
        transport: chat client, may also be attached later via the messenger

    Returns:
        Wired ServiceContainer (not started)
    """
    config = config or AppConfig()
    clock = clock or SystemClock()

    store = RecordStore(config.storage.data_dir, config.storage.resolved_backup_dir)
    cache = RecordCache(store, clock)
    rentals = RentalManager(cache, clock, config.rental)
    access = AccessController(cache, rentals, clock, config.rental)
    rate_limiter = FixedWindowRateLimiter(
        clock,
        limit_per_window=config.limits.messages_per_minute,
        window_ms=config.limits.rate_window_ms,
    )
    groups = GroupDirectory(cache, clock)
    activity = ActivityTracker(cache, clock, flush_every=config.storage.activity_flush_every)
    messenger = Messenger(rate_limiter, transport)
    router = EventRouter(access, groups, activity, messenger, command_prefix=config.bot.prefix)
    housekeeping = Housekeeping(cache, rentals, messenger, rate_limiter, clock, config)
    scheduler = PeriodicScheduler(default_jobs(housekeeping), clock)
    time_controller = TimeController(clock, rentals) if isinstance(clock, VirtualClock) else None

    logger.info(
        "services_built",
        clock=type(clock).__name__,
        data_dir=str(config.storage.data_dir),
        time_control=time_controller is not None,
    )

    return ServiceContainer(
        config=config,
        clock=clock,
        store=store,
        cache=cache,
        rentals=rentals,
        access=access,
        rate_limiter=rate_limiter,
        groups=groups,
        activity=activity,
        messenger=messenger,
        router=router,
        housekeeping=housekeeping,
        scheduler=scheduler,
        time_controller=time_controller,
    )
