"""Transport boundary models.

Shapes of the events a chat client delivers and of the group metadata it can
look up. The client itself lives outside this package.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ParticipantAction(str, Enum):
    """Membership change kinds."""

    ADD = "add"
    REMOVE = "remove"
    PROMOTE = "promote"
    DEMOTE = "demote"


class InboundMessage(BaseModel):
    """A message delivered by the transport."""

    message_id: Optional[str] = Field(None, description="Transport key of the message, used to delete it")
    chat_id: str = Field(..., description="Chat the message was posted in")
    sender_id: str = Field(..., description="Author of the message")
    is_group: bool = Field(..., description="True for group chats")
    text: str = Field(default="", description="Message text or media caption")
    replied_to: Optional[str] = Field(None, description="Quoted message, if any")


class ParticipantUpdate(BaseModel):
    """Members added to, removed from, promoted or demoted in a group."""

    group_id: str = Field(..., description="Group identifier")
    participants: list[str] = Field(default_factory=list, description="Affected member ids")
    action: ParticipantAction = Field(..., description="Kind of change")


class GroupMetadata(BaseModel):
    """Group metadata as reported by the transport."""

    subject: Optional[str] = Field(None, description="Group name")
    participants: list[str] = Field(default_factory=list, description="Member ids")
    created_at: Optional[datetime] = Field(None, description="Group creation time")
