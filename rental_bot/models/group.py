"""Group, user and member activity models."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class GroupRecord(BaseModel):
    """Stored group metadata and trial bookkeeping."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(None, description="Group identifier")
    name: Optional[str] = Field(None, description="Group subject")
    participants: Optional[int] = Field(None, description="Participant count at last sync")
    join_date: Optional[datetime] = Field(None, description="First observation of the group; set once")
    trial_started: bool = Field(default=False, description="Whether the trial window was granted")
    last_update: Optional[datetime] = Field(None, description="Last metadata sync")
    updated_at: Optional[datetime] = Field(None, description="Last modification time")


class UserRecord(BaseModel):
    """Stored user profile. Profile fields are free-form."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(None, description="User identifier")
    updated_at: Optional[datetime] = Field(None, description="Last modification time")


class ActivityRecord(BaseModel):
    """Per-member activity counters within one group."""

    group_id: str = Field(..., description="Group identifier")
    user_id: str = Field(..., description="Member identifier")
    message_count: int = Field(default=0, ge=0, description="Messages seen; only ever increments")
    first_seen: Optional[datetime] = Field(None, description="First time the member was seen; set once")
    last_seen: Optional[datetime] = Field(None, description="Most recent activity")

    def to_record(self) -> dict[str, Any]:
        """Serialize to the JSON-like form kept in the store."""
        return self.model_dump(mode="json")


def activity_key(group_id: str, user_id: str) -> str:
    """Composite store key for an activity record."""
    return f"{group_id}:{user_id}"
