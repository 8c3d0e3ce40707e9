"""Outbound messaging through the chat transport.

The transport (the chat client) is an external collaborator. It is attached
at runtime; until then every send is refused.
"""

from datetime import datetime
from typing import Optional, Protocol, Sequence

from rental_bot.logging_config import get_logger
from rental_bot.models.events import GroupMetadata
from rental_bot.models.rental import RentalRecord
from rental_bot.services.rate_limiter import FixedWindowRateLimiter

logger = get_logger(__name__)


class Transport(Protocol):
    """What the core needs from a chat client."""

    def send(self, chat_id: str, text: str, mentions: Sequence[str]) -> None:
        ...

    def group_metadata(self, chat_id: str) -> GroupMetadata:
        ...

    def delete(self, chat_id: str, message_id: str) -> None:
        ...


def format_time_left(end_date: datetime, now: datetime) -> str:
    """Human-readable time until end_date, e.g. "in 5 hours"."""
    seconds = int((end_date - now).total_seconds())
    if seconds <= 0:
        return "now"
    hours, remainder = divmod(seconds, 3600)
    if hours >= 48:
        return f"in {hours // 24} days"
    if hours >= 1:
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    minutes = max(remainder // 60, 1)
    return f"in {minutes} minute{'s' if minutes != 1 else ''}"


def mention_handle(user_id: str) -> str:
    """Mention text for a member id ("123@s.chat" -> "@123")."""
    return "@" + user_id.split("@")[0]


class Messenger:
    """Rate-limited sender.

    Args:
        rate_limiter: per-chat send throttle
        transport: chat client, may be attached later
    """

    def __init__(self, rate_limiter: FixedWindowRateLimiter, transport: Optional[Transport] = None):
        self.rate_limiter = rate_limiter
        self.transport = transport

    def attach(self, transport: Transport) -> None:
        self.transport = transport
        logger.info("transport_attached", transport=type(transport).__name__)

    def detach(self) -> None:
        self.transport = None
        logger.info("transport_detached")

    @property
    def is_connected(self) -> bool:
        return self.transport is not None

    def send(self, chat_id: str, text: str, mentions: Sequence[str] = ()) -> bool:
        """Send a message if a transport is attached and the chat is not throttled.

        Transport failures are logged and reported as False; they are never
        raised to the caller.

        Returns:
            True if the message was handed to the transport
        """
        if self.transport is None:
            logger.warning("send_refused_not_connected", chat_id=chat_id)
            return False

        if not self.rate_limiter.allow(chat_id):
            logger.warning("send_rate_limited", chat_id=chat_id)
            return False

        try:
            self.transport.send(chat_id, text, list(mentions))
        except Exception as e:
            logger.error("send_failed", chat_id=chat_id, error=str(e), error_type=type(e).__name__)
            return False
        return True

    def delete_message(self, chat_id: str, message_id: Optional[str]) -> bool:
        """Remove a message from a chat. Not rate limited.

        Returns:
            True if the transport accepted the deletion
        """
        if self.transport is None or not message_id:
            return False
        try:
            self.transport.delete(chat_id, message_id)
        except Exception as e:
            logger.error("delete_failed", chat_id=chat_id, error=str(e), error_type=type(e).__name__)
            return False
        return True

    def notify_expiring_rental(self, rental: RentalRecord, now: datetime) -> bool:
        """Warn a group that its rental is about to expire."""
        text = (
            "Attention!\n\n"
            f"The bot rental in this group expires {format_time_left(rental.end_date, now)}.\n\n"
            "Contact the owner to extend it."
        )
        return self.send(rental.group_id, text)

    def group_metadata(self, chat_id: str) -> Optional[GroupMetadata]:
        """Fetch group metadata, or None when disconnected or on transport failure."""
        if self.transport is None:
            return None
        try:
            return self.transport.group_metadata(chat_id)
        except Exception as e:
            logger.error("group_metadata_failed", chat_id=chat_id, error=str(e))
            return None
