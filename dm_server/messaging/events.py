"""Live-channel event payloads.

One class per event kind, each with a fixed set of fields. Outbound
events expose `name` (the Socket.IO event) and `to_dict()` (the payload);
inbound payloads are validated with `from_payload`, which raises
ValueError on anything malformed.

Server -> client:
- newMessage               full message
- messageReactionUpdated   {messageId, emoji, userId}
- messageStatusUpdated     {messageId, status}
- getOnlineUsers           {userIds}

Client -> server:
- messageDelivered / messageRead   {messageIds}
- reactToMessage                   {messageId, emoji}
"""
from typing import Any, Dict, List, Optional

from dm_server.messaging.models import Message, MessageStatus


class LiveEvent:
    name: str = ''

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


class NewMessageEvent(LiveEvent):
    name = 'newMessage'

    def __init__(self, message: Message):
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return self.message.to_dict()

    @classmethod
    def from_payload(cls, data: Any) -> 'NewMessageEvent':
        data = _require_dict(data)
        for key in ('messageId', 'senderId', 'receiverId'):
            _require_str(data, key)
        return cls(Message.from_dict(data))


class ReactionUpdatedEvent(LiveEvent):
    name = 'messageReactionUpdated'

    def __init__(self, message_id: str, emoji: Optional[str], user_id: str):
        self.message_id = message_id
        self.emoji = emoji
        self.user_id = user_id

    def to_dict(self) -> Dict[str, Any]:
        return {'messageId': self.message_id, 'emoji': self.emoji, 'userId': self.user_id}

    @classmethod
    def from_payload(cls, data: Any) -> 'ReactionUpdatedEvent':
        data = _require_dict(data)
        return cls(
            message_id=_require_str(data, 'messageId'),
            emoji=data.get('emoji'),
            user_id=_require_str(data, 'userId')
        )


class StatusUpdatedEvent(LiveEvent):
    name = 'messageStatusUpdated'

    def __init__(self, message_id: str, status: MessageStatus):
        self.message_id = message_id
        self.status = MessageStatus(status)

    def to_dict(self) -> Dict[str, Any]:
        return {'messageId': self.message_id, 'status': self.status.value}

    @classmethod
    def from_payload(cls, data: Any) -> 'StatusUpdatedEvent':
        data = _require_dict(data)
        try:
            status = MessageStatus(data.get('status'))
        except ValueError:
            raise ValueError(f"Unknown message status: {data.get('status')!r}")
        return cls(message_id=_require_str(data, 'messageId'), status=status)


class OnlineUsersEvent(LiveEvent):
    name = 'getOnlineUsers'

    def __init__(self, user_ids: List[str]):
        self.user_ids = list(user_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {'userIds': self.user_ids}

    @classmethod
    def from_payload(cls, data: Any) -> 'OnlineUsersEvent':
        # Older servers sent the bare list
        if isinstance(data, list):
            return cls([str(u) for u in data])
        data = _require_dict(data)
        return cls([str(u) for u in data.get('userIds') or []])


class StatusBatchRequest:
    """Inbound messageDelivered / messageRead payload."""

    def __init__(self, message_ids: List[str]):
        self.message_ids = message_ids

    @classmethod
    def from_payload(cls, data: Any, max_size: int) -> 'StatusBatchRequest':
        data = _require_dict(data)
        ids = data.get('messageIds')
        if ids is None and data.get('messageId'):
            ids = [data.get('messageId')]
        if not isinstance(ids, list):
            raise ValueError('messageIds must be a list')
        if len(ids) > max_size:
            raise ValueError(f'At most {max_size} messageIds per request')
        # Keep order, drop duplicates and junk
        seen = set()
        cleaned = []
        for message_id in ids:
            if isinstance(message_id, str) and message_id and message_id not in seen:
                seen.add(message_id)
                cleaned.append(message_id)
        return cls(cleaned)


class ReactionRequest:
    """Inbound reactToMessage payload."""

    def __init__(self, message_id: str, emoji: Optional[str]):
        self.message_id = message_id
        self.emoji = emoji

    @classmethod
    def from_payload(cls, data: Any) -> 'ReactionRequest':
        data = _require_dict(data)
        if 'emoji' not in data:
            raise ValueError('emoji is required (null removes the reaction)')
        return cls(message_id=_require_str(data, 'messageId'), emoji=data.get('emoji'))


def _require_dict(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError('Event payload must be an object')
    return data


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f'{key} is required')
    return value
