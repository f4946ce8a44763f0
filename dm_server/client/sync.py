"""Client-side conversation state.

ChatSyncStore mirrors the server-confirmed state of one conversation and
keeps it current from live events. Local updates use the same
`reconcile` and `advance` functions as the server, so an optimistic
change and the server's answer converge on the same value.

Failures never raise to the caller: they are appended to `notices` and
the local state is left as it was.
"""
import logging
import threading
from typing import Any, Dict, List, Optional

from dm_server.client.api import ChatApiClient
from dm_server.client.channel import LiveChannel
from dm_server.exception.ChatApiError import ChatApiError
from dm_server.messaging.events import (
    NewMessageEvent, OnlineUsersEvent, ReactionUpdatedEvent, StatusUpdatedEvent
)
from dm_server.messaging.models import Message, MessageStatus
from dm_server.messaging.reactions import reconcile
from dm_server.messaging.status import advance

logger = logging.getLogger(__name__)


class ChatSyncStore:

    def __init__(self, api: ChatApiClient, channel: LiveChannel, user_id: str):
        self.api = api
        self.channel = channel
        self.user_id = user_id

        self.contacts: List[Dict[str, Any]] = []
        self.peer_id: Optional[str] = None
        self.messages: List[Message] = []
        self.online_users: List[str] = []
        self.notices: List[str] = []

        self._lock = threading.RLock()
        self._subscribed = False
        # Bound once so that off() removes exactly what on() added
        self._conversation_handlers = {
            NewMessageEvent.name: self._on_new_message,
            ReactionUpdatedEvent.name: self._on_reaction_updated,
            StatusUpdatedEvent.name: self._on_status_updated,
        }
        self._presence_handler = self._on_online_users
        self.channel.on(OnlineUsersEvent.name, self._presence_handler)

    # =========================================================================
    # Actions
    # =========================================================================

    def load_contacts(self) -> List[Dict[str, Any]]:
        try:
            contacts = self.api.list_contacts()
        except ChatApiError as e:
            self._notify(f'Could not load contacts: {e}')
            return self.contacts
        with self._lock:
            self.contacts = contacts
        return contacts

    def select_peer(self, peer_id: str) -> bool:
        """Switch the view to peer_id: fetch history, then follow live events.

        On a failed fetch the previous conversation stays selected.
        """
        try:
            history = self.api.get_conversation(peer_id)
        except ChatApiError as e:
            self._notify(f'Could not load conversation: {e}')
            return False

        self.unsubscribe()
        with self._lock:
            self.peer_id = peer_id
            self.messages = history
        self.subscribe()
        logger.debug(f"SYNC: selected peer={peer_id}, {len(history)} message(s)")
        return True

    def send_message(self, text: Optional[str] = None, image: Optional[str] = None) -> Optional[Message]:
        if self.peer_id is None:
            self._notify('Select a conversation first')
            return None
        try:
            message = self.api.send_message(self.peer_id, text=text, image=image)
        except ChatApiError as e:
            self._notify(f'Message not sent: {e}')
            return None
        with self._lock:
            self._append(message)
        return message

    def send_reaction(self, message_id: str, emoji: Optional[str]) -> Optional[Message]:
        """Apply the reaction locally, then let the server's answer win.

        The optimistic change is rolled back if the request fails.
        """
        with self._lock:
            message = self.find_message(message_id)
            if message is None:
                self._notify('Message is not in this conversation')
                return None
            previous = list(message.reactions)
            message.reactions = reconcile(previous, self.user_id, emoji)

        try:
            confirmed = self.api.react(message_id, emoji)
        except ChatApiError as e:
            with self._lock:
                message.reactions = previous
            self._notify(f'Reaction not saved: {e}')
            return None

        with self._lock:
            message.reactions = confirmed.reactions
        return message

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self):
        with self._lock:
            if self._subscribed:
                return
            for event_name, handler in self._conversation_handlers.items():
                self.channel.on(event_name, handler)
            self._subscribed = True

    def unsubscribe(self):
        """Remove the conversation listeners this store registered."""
        with self._lock:
            if not self._subscribed:
                return
            for event_name, handler in self._conversation_handlers.items():
                self.channel.off(event_name, handler)
            self._subscribed = False

    def close(self):
        self.unsubscribe()
        self.channel.off(OnlineUsersEvent.name, self._presence_handler)

    # =========================================================================
    # Live event handlers
    # =========================================================================

    def _on_new_message(self, data):
        try:
            message = NewMessageEvent.from_payload(data).message
        except (TypeError, ValueError, AttributeError) as e:
            logger.debug(f"SYNC: ignoring malformed newMessage: {e}")
            return

        with self._lock:
            if self.peer_id is None or message.counterpart_of(self.user_id) != self.peer_id:
                return
            if not self._append(message):
                return

        if message.receiver_id == self.user_id:
            ack = {'messageIds': [message.message_id]}
            if message.status == MessageStatus.SENT:
                self.channel.emit('messageDelivered', ack)
            if message.status != MessageStatus.READ:
                self.channel.emit('messageRead', ack)

    def _on_reaction_updated(self, data):
        try:
            event = ReactionUpdatedEvent.from_payload(data)
        except ValueError as e:
            logger.debug(f"SYNC: ignoring malformed reaction event: {e}")
            return
        # Our own reactions were applied from the request's response
        if event.user_id == self.user_id:
            return
        with self._lock:
            message = self.find_message(event.message_id)
            if message is not None:
                message.reactions = reconcile(message.reactions, event.user_id, event.emoji)

    def _on_status_updated(self, data):
        try:
            event = StatusUpdatedEvent.from_payload(data)
        except ValueError as e:
            logger.debug(f"SYNC: ignoring malformed status event: {e}")
            return
        with self._lock:
            message = self.find_message(event.message_id)
            if message is None:
                return
            new_status, changed = advance(message, event.status)
            if changed:
                message.status = new_status

    def _on_online_users(self, data):
        try:
            event = OnlineUsersEvent.from_payload(data)
        except ValueError as e:
            logger.debug(f"SYNC: ignoring malformed presence event: {e}")
            return
        with self._lock:
            self.online_users = event.user_ids

    # =========================================================================
    # Helpers
    # =========================================================================

    def find_message(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.message_id == message_id:
                return message
        return None

    def is_online(self, user_id: str) -> bool:
        return user_id in self.online_users

    def _append(self, message: Message) -> bool:
        if self.find_message(message.message_id) is not None:
            return False
        self.messages.append(message)
        return True

    def _notify(self, text: str):
        logger.warning(f"SYNC: {text}")
        self.notices.append(text)
