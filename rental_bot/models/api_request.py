"""API request and response models for control endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from rental_bot.models.group import ActivityRecord
from rental_bot.models.rental import RentalRecord, RentalStatus
from rental_bot.models.settings import GroupSettings


class CreateRentalRequest(BaseModel):
    """Request to create (or replace) a group's rental."""

    group_id: str = Field(..., description="Group identifier")
    plan: str = Field(..., description="Plan key (e.g. basic) or free-form plan name")
    duration_hours: Optional[float] = Field(
        None, description="Rental length in hours; taken from the configured plan if omitted"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "group_id": "120363025246125888@g.us",
                "plan": "basic",
                "duration_hours": 72,
            }
        }


class RentalResponse(BaseModel):
    """A rental as returned by the control API."""

    group_id: str = Field(..., description="Group identifier")
    plan: str = Field(..., description="Plan name")
    start_date: datetime = Field(..., description="Rental start (UTC)")
    end_date: datetime = Field(..., description="Rental end (UTC)")
    status: RentalStatus = Field(..., description="Stored status")
    active: bool = Field(..., description="Whether the rental grants access right now")
    time_remaining_hours: float = Field(..., description="Hours left until end_date (0 if past)")
    message: Optional[str] = Field(None, description="Result message")

    @classmethod
    def from_rental(cls, rental: RentalRecord, now: datetime, message: Optional[str] = None) -> "RentalResponse":
        return cls(
            group_id=rental.group_id,
            plan=rental.plan,
            start_date=rental.start_date,
            end_date=rental.end_date,
            status=rental.status,
            active=rental.is_active_at(now),
            time_remaining_hours=round(rental.time_remaining(now).total_seconds() / 3600, 2),
            message=message,
        )


class RentalListResponse(BaseModel):
    """All rentals, optionally filtered by status."""

    total: int = Field(..., description="Number of rentals returned")
    rentals: list[RentalResponse] = Field(default_factory=list)


class ExtendRentalRequest(BaseModel):
    """Request to extend a rental."""

    hours: float = Field(..., description="Hours added to the current end date")

    class Config:
        json_schema_extra = {"example": {"hours": 24}}


class DeleteRentalResponse(BaseModel):
    """Response after deleting a rental."""

    group_id: str = Field(..., description="Group identifier")
    deleted: bool = Field(..., description="Whether a rental was removed")
    message: str = Field(..., description="Result message")


class SweepResponse(BaseModel):
    """Response after sweeping expired rentals."""

    expired: int = Field(..., description="Rentals flipped to expired")
    message: str = Field(..., description="Result message")


class AccessResponse(BaseModel):
    """Access decision for a group."""

    group_id: str = Field(..., description="Group identifier")
    has_access: bool = Field(..., description="Whether the group may use the bot")
    rental_active: bool = Field(..., description="Whether an active rental exists")
    in_trial: bool = Field(..., description="Whether the trial window is still running")
    join_date: Optional[datetime] = Field(None, description="First observation of the group")
    trial_ends_at: Optional[datetime] = Field(None, description="End of the trial window")


class SettingsResponse(BaseModel):
    """A group's moderation settings."""

    group_id: str = Field(..., description="Group identifier")
    settings: GroupSettings = Field(..., description="Current settings")


class UpdateSettingsRequest(BaseModel):
    """Partial settings update; only the given toggles change."""

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={"example": {"anti_spam": {"anti_link": True}, "moderation": {"welcome": True}}},
    )

    anti_spam: Optional[dict[str, bool]] = Field(None, description="Anti-spam toggles to change")
    moderation: Optional[dict[str, bool]] = Field(None, description="Moderation toggles to change")


class InactiveMembersResponse(BaseModel):
    """Members without recent activity."""

    group_id: str = Field(..., description="Group identifier")
    days: int = Field(..., description="Inactivity threshold in days")
    total: int = Field(..., description="Number of inactive members")
    members: list[ActivityRecord] = Field(default_factory=list)


class BackupResponse(BaseModel):
    """Response after a manual backup."""

    backup: str = Field(..., description="Backup directory name")
    flushed: list[str] = Field(default_factory=list, description="Collections written before the snapshot")
    pruned: list[str] = Field(default_factory=list, description="Old backups removed")
    message: str = Field(..., description="Result message")


class AdvanceTimeRequest(BaseModel):
    """Request to advance virtual time."""

    days: Optional[int] = Field(None, description="Days to advance")
    hours: Optional[int] = Field(None, description="Hours to advance")
    minutes: Optional[int] = Field(None, description="Minutes to advance")

    class Config:
        json_schema_extra = {
            "example": {
                "days": 3,
                "hours": 0,
                "minutes": 0,
            }
        }


class AdvanceTimeResponse(BaseModel):
    """Response after advancing time."""

    previous_time: datetime = Field(..., description="Virtual time before the jump")
    current_time: datetime = Field(..., description="Virtual time after the jump")
    advanced_by_seconds: float = Field(..., description="Time advanced in seconds")
    rentals_expired: int = Field(..., description="Rentals expired by the sweep after the jump")
    message: str = Field(..., description="Success message")


class ResetTimeResponse(BaseModel):
    """Response after resetting virtual time."""

    previous_time: datetime = Field(..., description="Virtual time before the reset")
    current_time: datetime = Field(..., description="Real time the clock was reset to")
    message: str = Field(..., description="Success message")


class StatusResponse(BaseModel):
    """Service status and statistics."""

    status: str = Field(..., description="Service status")
    current_time: datetime = Field(..., description="Current (possibly virtual) time")
    virtual_time: bool = Field(..., description="Whether a virtual clock is in use")
    time_offset_seconds: float = Field(..., description="Virtual time advanced since start or reset")
    transport_connected: bool = Field(..., description="Whether a chat transport is attached")
    statistics: dict[str, Any] = Field(default_factory=dict, description="Record and rental counts")
    jobs: dict[str, Any] = Field(default_factory=dict, description="Scheduler job status")


class ErrorResponse(BaseModel):
    """Error body returned by the control API."""

    error: str = Field(..., description="Error category")
    message: str = Field(..., description="Error details")
