"""Rental state and lifecycle models.

A rental is a time-bounded entitlement that grants a group access to the bot.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class RentalStatus(str, Enum):
    """Rental status as stored in rentals.json."""

    ACTIVE = "active"  # Entitlement granted until end_date
    EXPIRED = "expired"  # Swept after end_date passed


class RentalRecord(BaseModel):
    """Stored rental for one group.

    The store keeps plain dictionaries; this model is the typed view used by the
    rental manager and the control API.
    """

    group_id: str = Field(..., description="Group identifier the rental belongs to")
    plan: str = Field(..., description="Plan name (e.g. basic, premium)")

    # Validity window
    start_date: datetime = Field(..., description="Rental start (UTC)")
    end_date: datetime = Field(..., description="Rental end (UTC)")

    # State
    status: RentalStatus = Field(default=RentalStatus.ACTIVE, description="Current rental status")

    # Bookkeeping
    created_at: datetime = Field(..., description="When the rental was created")
    updated_at: Optional[datetime] = Field(None, description="Last modification time")
    deactivated_at: Optional[datetime] = Field(None, description="When the sweep expired the rental")
    expiry_warned_for: Optional[datetime] = Field(
        None, description="end_date for which an expiry warning was already sent"
    )

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "RentalRecord":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def is_active_at(self, now: datetime) -> bool:
        """True iff the rental is active and now is before end_date."""
        return self.status == RentalStatus.ACTIVE and now < self.end_date

    def is_due_for_expiry(self, now: datetime) -> bool:
        """True iff the sweep should flip this rental to expired."""
        return self.status == RentalStatus.ACTIVE and self.end_date < now

    def time_remaining(self, now: datetime) -> timedelta:
        """Time left until end_date, never negative."""
        return max(self.end_date - now, timedelta(0))

    def to_record(self) -> dict[str, Any]:
        """Serialize to the JSON-like form kept in the store."""
        return self.model_dump(mode="json")
