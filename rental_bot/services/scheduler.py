"""Periodic scheduler for the housekeeping jobs.

Jobs (UTC):
- rental_sweep: hourly at minute 0
- backup: every 6 hours at 00/06/12/18:00
- retention_trim: weekly, Sunday 00:00
- rate_limit_reset: every 15 minutes

Each job runs in its own daemon thread. A failing run is logged and recorded
in the job's status; the schedule continues. Runs of different jobs may
overlap, runs of the same job never do: a run requested while the previous
one is still going is skipped.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional

from rental_bot.logging_config import get_logger
from rental_bot.services.clock import Clock
from rental_bot.services.housekeeping import Housekeeping

logger = get_logger(__name__)

JOB_RENTAL_SWEEP = "rental_sweep"
JOB_BACKUP = "backup"
JOB_RETENTION_TRIM = "retention_trim"
JOB_RATE_LIMIT_RESET = "rate_limit_reset"

SUNDAY = 6


class SchedulerError(Exception):
    """Raised for unknown job names."""

    pass


def _midnight(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def next_interval_boundary(now: datetime, interval: timedelta) -> datetime:
    """First boundary strictly after now, counting intervals from UTC midnight.

    The interval should divide a day evenly (15 min, 1 h, 6 h).

    Example:
        >>> next_interval_boundary(datetime(2026, 10, 19, 7, 30, tzinfo=timezone.utc), timedelta(hours=6))
        datetime.datetime(2026, 10, 19, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if interval <= timedelta(0):
        raise ValueError("interval must be positive")
    start = _midnight(now)
    return start + ((now - start) // interval + 1) * interval


def next_weekly_boundary(now: datetime, weekday: int = SUNDAY) -> datetime:
    """Next midnight falling on weekday (Monday=0), strictly after now."""
    candidate = _midnight(now) + timedelta(days=(weekday - now.weekday()) % 7)
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate


@dataclass
class JobStatus:
    """Run history of one job."""

    name: str
    cadence: str
    runs: int = 0
    failures: int = 0
    skipped: int = 0
    running: bool = False
    last_started: Optional[datetime] = None
    last_finished: Optional[datetime] = None
    last_error: Optional[str] = None
    last_result: Any = None
    next_run: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "cadence": self.cadence,
            "runs": self.runs,
            "failures": self.failures,
            "skipped": self.skipped,
            "running": self.running,
            "last_started": self.last_started.isoformat() if self.last_started else None,
            "last_finished": self.last_finished.isoformat() if self.last_finished else None,
            "last_error": self.last_error,
            "next_run": self.next_run.isoformat() if self.next_run else None,
        }


@dataclass
class ScheduledJob:
    """A named action and the function computing its next run time."""

    name: str
    action: Callable[[], Any]
    next_run_after: Callable[[datetime], datetime]
    cadence: str
    lock: threading.Lock = field(default_factory=threading.Lock)


def default_jobs(housekeeping: Housekeeping) -> list[ScheduledJob]:
    """The four fixed housekeeping jobs."""
    return [
        ScheduledJob(
            name=JOB_RENTAL_SWEEP,
            action=housekeeping.check_rentals,
            next_run_after=lambda now: next_interval_boundary(now, timedelta(hours=1)),
            cadence="hourly at :00",
        ),
        ScheduledJob(
            name=JOB_BACKUP,
            action=housekeeping.backup,
            next_run_after=lambda now: next_interval_boundary(now, timedelta(hours=6)),
            cadence="00/06/12/18:00",
        ),
        ScheduledJob(
            name=JOB_RETENTION_TRIM,
            action=housekeeping.trim_retention,
            next_run_after=lambda now: next_weekly_boundary(now, SUNDAY),
            cadence="Sunday 00:00",
        ),
        ScheduledJob(
            name=JOB_RATE_LIMIT_RESET,
            action=housekeeping.clear_rate_limits,
            next_run_after=lambda now: next_interval_boundary(now, timedelta(minutes=15)),
            cadence="every 15 minutes",
        ),
    ]


class PeriodicScheduler:
    """Runs jobs at their boundaries on background threads.

    Run times are computed from the injected clock. Threads wake at least every
    poll_seconds to re-read the clock, so a virtual clock that jumps forward
    triggers due jobs on the next poll.

    Args:
        jobs: jobs to schedule
        clock: time source
        poll_seconds: longest sleep between clock checks
    """

    def __init__(self, jobs: Iterable[ScheduledJob], clock: Clock, poll_seconds: float = 30.0):
        self.clock = clock
        self.poll_seconds = poll_seconds
        self._jobs: dict[str, ScheduledJob] = {}
        self._status: dict[str, JobStatus] = {}
        for job in jobs:
            self._jobs[job.name] = job
            self._status[job.name] = JobStatus(name=job.name, cadence=job.cadence)
        self._status_lock = threading.Lock()
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def job_names(self) -> list[str]:
        return list(self._jobs.keys())

    @property
    def is_running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def start(self) -> None:
        """Start one daemon thread per job. No-op if already started."""
        if self.is_running:
            return
        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._loop, args=(job,), name=f"scheduler-{job.name}", daemon=True)
            for job in self._jobs.values()
        ]
        for thread in self._threads:
            thread.start()
        logger.info("scheduler_started", jobs=self.job_names)

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop all job threads and wait for runs in progress to finish."""
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []
        logger.info("scheduler_stopped")

    def run_job(self, name: str) -> bool:
        """Run a job now, in the calling thread.

        Failures are logged and recorded, not raised.

        Returns:
            True if the job ran, False if it was skipped because it was already running

        Raises:
            SchedulerError: If the job name is unknown
        """
        job = self._jobs.get(name)
        if job is None:
            raise SchedulerError(f"Unknown job: {name}")

        if not job.lock.acquire(blocking=False):
            with self._status_lock:
                self._status[name].skipped += 1
            logger.warning("job_skipped_already_running", job=name)
            return False

        try:
            self._execute(job)
        finally:
            job.lock.release()
        return True

    def get_status(self, name: Optional[str] = None) -> dict[str, Any]:
        """Status of one job, or of all jobs keyed by name.

        Raises:
            SchedulerError: If name is given and unknown
        """
        with self._status_lock:
            if name is not None:
                if name not in self._status:
                    raise SchedulerError(f"Unknown job: {name}")
                return self._status[name].to_dict()
            return {job_name: status.to_dict() for job_name, status in self._status.items()}

    def _execute(self, job: ScheduledJob) -> None:
        started = self.clock.now()
        with self._status_lock:
            status = self._status[job.name]
            status.running = True
            status.last_started = started

        logger.debug("job_started", job=job.name)
        error: Optional[str] = None
        result: Any = None
        try:
            result = job.action()
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.error("job_failed", job=job.name, error=str(e), error_type=type(e).__name__, exc_info=True)

        with self._status_lock:
            status.running = False
            status.runs += 1
            status.last_finished = self.clock.now()
            status.last_error = error
            if error is not None:
                status.failures += 1
            else:
                status.last_result = result

        if error is None:
            logger.info("job_completed", job=job.name, result=result)

    def _loop(self, job: ScheduledJob) -> None:
        next_run = job.next_run_after(self.clock.now())
        self._set_next_run(job.name, next_run)

        while not self._stop.is_set():
            now = self.clock.now()
            if now >= next_run:
                self.run_job(job.name)
                next_run = job.next_run_after(self.clock.now())
                self._set_next_run(job.name, next_run)
                continue
            remaining = (next_run - now).total_seconds()
            self._stop.wait(min(remaining, self.poll_seconds))

    def _set_next_run(self, name: str, next_run: datetime) -> None:
        with self._status_lock:
            self._status[name].next_run = next_run
