"""Event fan-out for the live channel.

Usage:
    dispatcher = EventDispatcher(socketio, presence)

    # Both parties of a message
    dispatcher.dispatch(ReactionUpdatedEvent(...), sender_id, receiver_id)

    # Receiver only
    dispatcher.dispatch(NewMessageEvent(message), sender_id, receiver_id, notify_sender=False)

    # Everybody
    dispatcher.broadcast_online_users()

Delivery is best effort: a party without a live session simply misses the
event and catches up on its next history fetch. Nothing is queued or
retried, and a missing session is never an error.
"""
import logging
from typing import List

from dm_server.messaging.events import LiveEvent, OnlineUsersEvent
from dm_server.websocket.presence import PresenceRegistry

logger = logging.getLogger(__name__)


class EventDispatcher:
    """Delivers one logical event at most once per live connection."""

    def __init__(self, socketio, presence: PresenceRegistry):
        self.socketio = socketio
        self.presence = presence

    def resolve_targets(self, sender_id: str, receiver_id: str, notify_sender: bool = True) -> List[str]:
        """Live sids for the parties, in order, without duplicates."""
        parties = [receiver_id, sender_id] if notify_sender else [receiver_id]
        targets = []
        for user_id in parties:
            sid = self.presence.resolve(user_id)
            if sid is None:
                logger.debug(f"EVENT_EMITTER: user={user_id} offline, skipping")
                continue
            if sid not in targets:
                targets.append(sid)
        return targets

    def dispatch(self, event: LiveEvent, sender_id: str, receiver_id: str, notify_sender: bool = True) -> int:
        """Emit event to the parties' sessions; returns the number of sessions reached."""
        payload = event.to_dict()
        emitted_count = 0
        for sid in self.resolve_targets(sender_id, receiver_id, notify_sender):
            try:
                self.socketio.emit(event.name, payload, to=sid)
                emitted_count += 1
            except Exception as e:
                logger.error(f"EVENT_EMITTER: Error emitting {event.name} to socket {sid}: {e}")
        logger.debug(f"EVENT_EMITTER: '{event.name}' reached {emitted_count} session(s)")
        return emitted_count

    def broadcast_online_users(self) -> bool:
        event = OnlineUsersEvent(self.presence.online_user_ids())
        try:
            self.socketio.emit(event.name, event.to_dict())
            return True
        except Exception as e:
            logger.error(f"EVENT_EMITTER: Error broadcasting {event.name}: {e}")
            return False
