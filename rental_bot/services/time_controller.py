"""Virtual time control for testing rental expiry and trial windows.

Responsibilities:
- Advance the virtual clock (days, hours, minutes)
- Sweep rentals that expired during the jump
- Reset the virtual clock to real time
"""

from datetime import timedelta
from typing import Any

from rental_bot.logging_config import get_logger
from rental_bot.services.clock import VirtualClock
from rental_bot.services.rental_manager import RentalManager

logger = get_logger(__name__)


class TimeController:
    """Fast-forwards virtual time and processes what became due.

    Args:
        clock: virtual clock shared with all services
        rentals: rental manager whose expired rentals are swept after a jump
    """

    def __init__(self, clock: VirtualClock, rentals: RentalManager) -> None:
        self.clock = clock
        self.rentals = rentals

    def advance_time(self, days: int = 0, hours: int = 0, minutes: int = 0) -> dict[str, Any]:
        """Advance virtual time, then sweep expired rentals.

        Args:
            days: number of days to advance
            hours: number of hours to advance
            minutes: number of minutes to advance

        Returns:
            Dictionary with:
                - old_time: time before advancement
                - new_time: time after advancement
                - advanced_by: amount of time advanced
                - rentals_expired: rentals expired by the sweep
        Raises:
            ValueError: if time values are negative
        """
        if days < 0 or hours < 0 or minutes < 0:
            raise ValueError("Cannot advance time backwards, negative values are not allowed.")

        delta = timedelta(days=days, hours=hours, minutes=minutes)
        old_time = self.clock.now()

        if not delta:
            return {"old_time": old_time, "new_time": old_time, "advanced_by": delta, "rentals_expired": 0}

        new_time = self.clock.advance(delta)
        logger.info(
            "time_advanced",
            old_time=old_time.isoformat(),
            new_time=new_time.isoformat(),
            days=days,
            hours=hours,
            minutes=minutes,
        )

        expired = self.rentals.sweep_expired()
        return {"old_time": old_time, "new_time": new_time, "advanced_by": delta, "rentals_expired": expired}

    def reset_time(self) -> dict[str, Any]:
        """Reset virtual time back to real current time."""
        old_time = self.clock.now()
        new_time = self.clock.reset()
        return {"old_time": old_time, "new_time": new_time}
