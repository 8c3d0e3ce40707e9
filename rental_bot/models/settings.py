"""Per-group moderation settings.

Two fixed groups of boolean toggles. A group without stored settings uses the
baseline (everything off); partial updates are merged over the current values.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AntiSpamSettings(BaseModel):
    """Anti-spam filters."""

    model_config = ConfigDict(extra="forbid")

    anti_link: bool = Field(default=False, description="Delete messages containing links")
    anti_link2: bool = Field(default=False, description="Also catch obfuscated links")
    anti_call: bool = Field(default=False, description="Delete mass-mention messages")
    anti_private: bool = Field(default=False, description="Block private messages to the bot")
    anti_delete: bool = Field(default=False, description="Announce deleted messages")


class ModerationSettings(BaseModel):
    """Moderation behaviour."""

    model_config = ConfigDict(extra="forbid")

    welcome: bool = Field(default=False, description="Greet new members")
    farewell: bool = Field(default=False, description="Announce departing members")
    restrict: bool = Field(default=False, description="Only admins may post")
    auto_read: bool = Field(default=False, description="Mark messages as read")
    auto_admin: bool = Field(default=False, description="Promote trusted users on join")


class GroupSettings(BaseModel):
    """Stored settings record for one group."""

    model_config = ConfigDict(extra="forbid")

    anti_spam: AntiSpamSettings = Field(default_factory=AntiSpamSettings)
    moderation: ModerationSettings = Field(default_factory=ModerationSettings)
    updated_at: Optional[datetime] = Field(None, description="Last modification time")

    def to_record(self) -> dict[str, Any]:
        """Serialize to the JSON-like form kept in the store."""
        return self.model_dump(mode="json", exclude_none=True)


def default_settings() -> GroupSettings:
    """Baseline settings for a group that never changed any toggle."""
    return GroupSettings()
