"""Messaging service layer for business logic.

Coordinates the message store and the live channel. Every mutation
follows the same order: read, decide (reconciler / status engine),
persist with compare-and-set, then fan the resulting change out to the
parties that are online.
"""
import logging
from typing import Any, Dict, List, Optional

from config import config
from dm_server.exception.ConcurrentUpdateError import ConcurrentUpdateError
from dm_server.exception.InvalidTransitionError import InvalidTransitionError
from dm_server.exception.NotFoundError import NotFoundError
from dm_server.messaging.events import NewMessageEvent, ReactionUpdatedEvent, StatusUpdatedEvent
from dm_server.messaging.models import Message, MessageStatus
from dm_server.messaging.reactions import reconcile, validate_emoji
from dm_server.messaging.status import advance, parse_status
from dm_server.repository.message_repository import MessageRepository
from dm_server.repository.user_repository import UserRepository
from dm_server.utils.generator import generate_message_id
from dm_server.utils.helpers import normalize_doc
from dm_server.websocket.event_emitter import EventDispatcher

logger = logging.getLogger(__name__)


class MessagingService:
    """High-level messaging operations."""

    def __init__(self, messages: MessageRepository, users: UserRepository, dispatcher: EventDispatcher):
        self.messages = messages
        self.users = users
        self.dispatcher = dispatcher

    # =========================================================================
    # Contacts & history
    # =========================================================================

    def list_contacts(self, user_id: str) -> List[Dict[str, Any]]:
        return [normalize_doc(user) for user in self.users.list_contacts(user_id)]

    def get_conversation(self, user_id: str, peer_id: str) -> List[Message]:
        if self.users.get_user(peer_id) is None:
            raise NotFoundError('User not found', resource='user', resource_id=peer_id)
        return self.messages.get_conversation(user_id, peer_id, limit=config.CHAT_HISTORY_LIMIT)

    # =========================================================================
    # Sending
    # =========================================================================

    def send_message(self, sender_id: str, receiver_id: str, text: Optional[str] = None,
                     image: Optional[str] = None) -> Message:
        text = _clean_optional_str(text, 'text')
        image = _clean_optional_str(image, 'image')
        if text is None and image is None:
            raise ValueError('A message needs text or an image')
        if text is not None and len(text) > config.CHAT_MAX_TEXT_LENGTH:
            raise ValueError(f'text must be at most {config.CHAT_MAX_TEXT_LENGTH} characters')
        if self.users.get_user(receiver_id) is None:
            raise NotFoundError('Receiver not found', resource='user', resource_id=receiver_id)

        message = Message(
            message_id=generate_message_id(),
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=text,
            image=image
        )
        self.messages.create_message(message)

        # The sender already has the message from the request's response
        self.dispatcher.dispatch(NewMessageEvent(message), sender_id, receiver_id, notify_sender=False)
        return message

    # =========================================================================
    # Reactions
    # =========================================================================

    def react(self, message_id: str, user_id: str, emoji: Optional[str]) -> Message:
        """Apply a reaction request and return the updated message."""
        emoji = validate_emoji(emoji, config.CHAT_MAX_EMOJI_LENGTH)

        for _ in range(config.CHAT_UPDATE_RETRIES):
            message = self._get_message_for(message_id, user_id)
            reactions = reconcile(message.reactions, user_id, emoji)
            if self.messages.save_reactions(message_id, reactions, expected_version=message.version):
                message.reactions = reactions
                message.version += 1
                break
        else:
            raise ConcurrentUpdateError(f'Could not update reactions on {message_id}')

        logger.info(f"Reaction on {message_id} by {user_id}: {emoji!r} -> {len(message.reactions)} reaction(s)")
        self.dispatcher.dispatch(
            ReactionUpdatedEvent(message_id, emoji, user_id),
            message.sender_id,
            message.receiver_id
        )
        return message

    # =========================================================================
    # Status progression
    # =========================================================================

    def update_status(self, user_id: str, message_id: str, target) -> Message:
        """Advance one message; raises NotFoundError / InvalidTransitionError."""
        target = parse_status(target)
        if target == MessageStatus.SENT:
            raise InvalidTransitionError('Status cannot be set back to sent', requested=target)

        for _ in range(config.CHAT_UPDATE_RETRIES):
            message = self._get_message_for(message_id, user_id)
            if message.receiver_id != user_id:
                raise InvalidTransitionError('Only the receiver can update a message status',
                                             current=message.status, requested=target)
            new_status, changed = advance(message, target)
            if not changed:
                raise InvalidTransitionError(
                    f'Cannot move message from {message.status.value} to {target.value}',
                    current=message.status, requested=target
                )
            if self.messages.save_status(message_id, new_status, expected_status=message.status):
                message.status = new_status
                break
        else:
            raise ConcurrentUpdateError(f'Could not update status on {message_id}')

        logger.debug(f"Message {message_id} is now {message.status.value}")
        self.dispatcher.dispatch(
            StatusUpdatedEvent(message_id, message.status),
            message.sender_id,
            message.receiver_id
        )
        return message

    def update_statuses(self, user_id: str, message_ids: List[str], target) -> List[Message]:
        """Advance each message independently; invalid or missing ids are skipped."""
        target = parse_status(target)
        updated = []
        for message_id in message_ids:
            try:
                updated.append(self.update_status(user_id, message_id, target))
            except (NotFoundError, InvalidTransitionError) as e:
                logger.debug(f"Skipping {message_id} in {target.value} batch: {e}")
            except ConcurrentUpdateError as e:
                logger.warning(f"Skipping {message_id} in {target.value} batch: {e}")
        logger.info(f"{target.value} batch from {user_id}: {len(updated)}/{len(message_ids)} updated")
        return updated

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_message_for(self, message_id: str, user_id: str) -> Message:
        """Load a message the user takes part in.

        Messages of other conversations are reported as missing so their
        existence does not leak.
        """
        message = self.messages.get_message(message_id)
        if message is None or not message.involves(user_id):
            raise NotFoundError('Message not found', resource='message', resource_id=message_id)
        return message


def _clean_optional_str(value, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f'{field} must be a string')
    value = value.strip()
    return value or None
