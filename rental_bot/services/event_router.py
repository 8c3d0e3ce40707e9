"""Routes transport events through the access gate to the services.

Every group event first passes AccessController.has_access(); a group without
an active rental or running trial is ignored. Direct chats are never gated.
"""

from typing import Optional

from rental_bot.logging_config import get_logger
from rental_bot.models.events import InboundMessage, ParticipantAction, ParticipantUpdate
from rental_bot.models.group import GroupRecord
from rental_bot.services.access_controller import AccessController
from rental_bot.services.activity_tracker import ACTIVITY_JOIN, ACTIVITY_MESSAGE, ActivityTracker
from rental_bot.services.group_directory import GroupDirectory
from rental_bot.services.messenger import Messenger, mention_handle
from rental_bot.services.spam_filter import WARNINGS, detect_violation
from rental_bot.state_logger import log_moderation_event

logger = get_logger(__name__)


class EventRouter:
    """Dispatches inbound messages and membership changes.

    Args:
        access: access gate
        groups: group metadata and settings
        activity: member activity counters
        messenger: outbound sender
        command_prefix: messages starting with it are commands and skip the anti-spam filters
    """

    def __init__(
        self,
        access: AccessController,
        groups: GroupDirectory,
        activity: ActivityTracker,
        messenger: Messenger,
        command_prefix: str = ".",
    ):
        self.access = access
        self.groups = groups
        self.activity = activity
        self.messenger = messenger
        self.command_prefix = command_prefix

    def handle_message(self, message: InboundMessage) -> bool:
        """Process an inbound message.

        Group messages count towards the sender's activity before the access
        check, so activity is tracked even for groups without access. Group
        messages that are not commands then go through the group's anti-spam
        filters; a violating message is deleted and its sender warned.

        Returns:
            True if the message may be handled further, False if it was
            ignored for lack of access or removed as spam
        """
        if not message.is_group:
            return True

        self.activity.record_activity(message.chat_id, message.sender_id, ACTIVITY_MESSAGE)

        if not self.access.has_access(message.chat_id):
            logger.debug("message_ignored_no_access", group_id=message.chat_id)
            return False

        if message.text.startswith(self.command_prefix):
            return True

        violation = detect_violation(self.groups.get_settings(message.chat_id).anti_spam, message.text)
        if violation is None:
            return True
        self._punish_spam(message, violation)
        return False

    def handle_participant_update(self, update: ParticipantUpdate) -> None:
        """Process members added, removed, promoted or demoted."""
        group_id = update.group_id
        if not self.access.has_access(group_id):
            logger.debug("participant_update_ignored_no_access", group_id=group_id)
            return

        settings = self.groups.get_settings(group_id)

        for participant in update.participants:
            handle = mention_handle(participant)

            if update.action == ParticipantAction.ADD:
                self.activity.record_activity(group_id, participant, ACTIVITY_JOIN)
                if settings.moderation.welcome:
                    self.messenger.send(group_id, self._welcome_text(group_id, handle), [participant])
                logger.info("participant_joined", group_id=group_id, participant=participant)

            elif update.action == ParticipantAction.REMOVE:
                if settings.moderation.farewell:
                    self.messenger.send(group_id, f"{handle} left the group", [participant])
                logger.info("participant_left", group_id=group_id, participant=participant)

            elif update.action == ParticipantAction.PROMOTE:
                self.messenger.send(group_id, f"{handle} is now an admin!", [participant])
                logger.info("participant_promoted", group_id=group_id, participant=participant)

            elif update.action == ParticipantAction.DEMOTE:
                self.messenger.send(group_id, f"{handle} is no longer an admin", [participant])
                logger.info("participant_demoted", group_id=group_id, participant=participant)

    def handle_group_renamed(self, group_id: str, subject: str) -> None:
        """Store a new group subject."""
        if not self.access.has_access(group_id):
            return
        self.groups.observe_group(group_id, name=subject)
        logger.info("group_renamed", group_id=group_id, subject=subject)

    def handle_message_deleted(self, group_id: str, participant: Optional[str], from_me: bool = False) -> bool:
        """Announce a deleted message when the group enables anti_delete.

        Returns:
            True if an announcement was sent
        """
        if from_me or not participant:
            return False
        if not self.access.has_access(group_id):
            return False
        if not self.groups.get_settings(group_id).anti_spam.anti_delete:
            return False

        log_moderation_event(group_id, "message_deleted", target=participant)
        text = f"{mention_handle(participant)} deleted a message!"
        return self.messenger.send(group_id, text, [participant])

    def sync_group(self, group_id: str) -> Optional[GroupRecord]:
        """Pull group metadata from the transport and store it.

        Returns:
            Updated group record, or None if the metadata is unavailable
        """
        metadata = self.messenger.group_metadata(group_id)
        if metadata is None:
            return None
        return self.groups.observe_group(
            group_id,
            name=metadata.subject,
            participants=len(metadata.participants),
        )

    def _punish_spam(self, message: InboundMessage, violation: str) -> None:
        deleted = self.messenger.delete_message(message.chat_id, message.message_id)
        log_moderation_event(
            message.chat_id,
            f"{violation}_violation",
            target=message.sender_id,
            reason="deleted" if deleted else "delete_failed",
        )
        warning = f"{mention_handle(message.sender_id)} broke the rules!\n\n{WARNINGS[violation]}"
        self.messenger.send(message.chat_id, warning, [message.sender_id])

    def _welcome_text(self, group_id: str, handle: str) -> str:
        group = self.groups.get_group(group_id)
        name = group.name if group is not None and group.name else "the group"
        return f"Welcome to *{name}*, {handle}!"
