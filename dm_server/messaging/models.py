"""Messaging data models for direct (1-1) chat.

Collections:
- messages: Individual messages with their status and reactions
- users: Chat participants (owned by the account service, read-only here)

Every model has two shapes: a snake_case document for MongoDB
(`to_db_doc` / `from_doc`) and a camelCase wire form shared by the REST
API, the live channel and the client mirror (`to_dict` / `from_dict`).
"""
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum

from dm_server.utils.helpers import as_utc, utc_now
from dm_server.utils.versioning import get_version


class MessageStatus(str, Enum):
    SENT = "sent"              # Stored by the server
    DELIVERED = "delivered"    # Received by the recipient's client
    READ = "read"              # Seen by the recipient (terminal)


class Reaction:
    """One user's current emoji on a message."""

    __slots__ = ('user_id', 'emoji')

    def __init__(self, user_id: str, emoji: str):
        self.user_id = user_id
        self.emoji = emoji

    def __eq__(self, other):
        if not isinstance(other, Reaction):
            return NotImplemented
        return self.user_id == other.user_id and self.emoji == other.emoji

    def __hash__(self):
        return hash((self.user_id, self.emoji))

    def __repr__(self):
        return f"Reaction(user_id={self.user_id!r}, emoji={self.emoji!r})"

    def to_dict(self) -> Dict[str, Any]:
        return {'userId': self.user_id, 'emoji': self.emoji}

    def to_db_doc(self) -> Dict[str, Any]:
        return {'user_id': self.user_id, 'emoji': self.emoji}

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> 'Reaction':
        return cls(user_id=str(doc.get('user_id')), emoji=doc.get('emoji'))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Reaction':
        return cls(user_id=str(data.get('userId')), emoji=data.get('emoji'))


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value).replace('Z', '+00:00')))


class Message:
    """Message document structure."""

    def __init__(
        self,
        message_id: str,
        sender_id: str,
        receiver_id: str,
        text: Optional[str] = None,
        image: Optional[str] = None,
        status: MessageStatus = MessageStatus.SENT,
        reactions: Optional[List[Reaction]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        version: int = 1
    ):
        self.message_id = message_id
        self.sender_id = sender_id
        self.receiver_id = receiver_id
        self.text = text
        self.image = image
        self.status = MessageStatus(status)
        self.reactions = list(reactions or [])
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or self.created_at
        self.version = version

    def involves(self, user_id: str) -> bool:
        return user_id in (self.sender_id, self.receiver_id)

    def counterpart_of(self, user_id: str) -> Optional[str]:
        """The other party of the conversation, as seen by user_id."""
        if user_id == self.sender_id:
            return self.receiver_id
        if user_id == self.receiver_id:
            return self.sender_id
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'messageId': self.message_id,
            'senderId': self.sender_id,
            'receiverId': self.receiver_id,
            'text': self.text,
            'image': self.image,
            'status': self.status.value,
            'reactions': [r.to_dict() for r in self.reactions],
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_db_doc(self) -> Dict[str, Any]:
        return {
            '_id': self.message_id,
            'sender_id': self.sender_id,
            'receiver_id': self.receiver_id,
            'text': self.text,
            'image': self.image,
            'status': self.status.value,
            'reactions': [r.to_db_doc() for r in self.reactions],
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            '_v': self.version,
        }

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> 'Message':
        return cls(
            message_id=str(doc.get('_id')),
            sender_id=str(doc.get('sender_id')),
            receiver_id=str(doc.get('receiver_id')),
            text=doc.get('text'),
            image=doc.get('image'),
            status=doc.get('status', MessageStatus.SENT),
            reactions=[Reaction.from_doc(r) for r in doc.get('reactions') or []],
            created_at=as_utc(doc.get('created_at')),
            updated_at=as_utc(doc.get('updated_at')),
            version=get_version(doc)
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        """Build a message from its wire form (client side)."""
        return cls(
            message_id=str(data.get('messageId')),
            sender_id=str(data.get('senderId')),
            receiver_id=str(data.get('receiverId')),
            text=data.get('text'),
            image=data.get('image'),
            status=data.get('status', MessageStatus.SENT),
            reactions=[Reaction.from_dict(r) for r in data.get('reactions') or []],
            created_at=_parse_timestamp(data.get('createdAt')),
            updated_at=_parse_timestamp(data.get('updatedAt')),
        )
