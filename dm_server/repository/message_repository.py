"""Message repository for direct chat.

Messages are stored one document per message in the `messages`
collection. Status and reactions are the only mutable fields and both are
written with compare-and-set updates:

- reactions: guarded by the document version (_v)
- status: guarded by the status the caller read
"""
import logging
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING

from dm_server.messaging.models import Message, MessageStatus, Reaction
from dm_server.repository.base_repository import BaseRepository
from dm_server.utils.versioning import add_version_to_doc, versioned_update

logger = logging.getLogger(__name__)


class MessageRepository(BaseRepository):
    """Repository for chat messages."""

    def __init__(self, db, collection_name="messages"):
        super().__init__(db, collection_name)
        logger.debug(f"Initializing {self.collection_name} collection")

    # =========================================================================
    # Generic document access
    # =========================================================================

    def create(self, data: Dict[str, Any]) -> str:
        add_version_to_doc(data)
        return str(self.collection.insert_one(data).inserted_id)

    def find_one(self, query) -> Optional[Dict[str, Any]]:
        return self.collection.find_one(query)

    # =========================================================================
    # Message operations
    # =========================================================================

    def create_message(self, message: Message) -> Message:
        self.create(message.to_db_doc())
        logger.info(f"Message {message.message_id} stored ({message.sender_id} -> {message.receiver_id})")
        return message

    def get_message(self, message_id: str) -> Optional[Message]:
        if not isinstance(message_id, str) or not message_id:
            return None
        doc = self.find_one({'_id': message_id})
        return Message.from_doc(doc) if doc else None

    def get_conversation(self, user_a: str, user_b: str, limit: Optional[int] = None) -> List[Message]:
        """Messages exchanged between two users, oldest first.

        With a limit, the most recent `limit` messages are returned.
        """
        query = {'$or': [
            {'sender_id': user_a, 'receiver_id': user_b},
            {'sender_id': user_b, 'receiver_id': user_a},
        ]}
        if limit:
            cursor = self.collection.find(query).sort('created_at', DESCENDING).limit(limit)
            docs = list(cursor)
            docs.reverse()
        else:
            docs = list(self.collection.find(query).sort('created_at', ASCENDING))
        return [Message.from_doc(doc) for doc in docs]

    def save_reactions(self, message_id: str, reactions: List[Reaction], expected_version: int) -> bool:
        """Write a reactions list if the document is still at expected_version."""
        result = versioned_update(
            self.collection,
            {'_id': message_id},
            {'$set': {'reactions': [r.to_db_doc() for r in reactions]}},
            expected_version=expected_version
        )
        if result.get('version_mismatch'):
            logger.debug(f"Reactions write on {message_id} lost a race at v{expected_version}")
        return result['success']

    def save_status(self, message_id: str, new_status: MessageStatus, expected_status: MessageStatus) -> bool:
        """Write a status if the message still has expected_status."""
        result = versioned_update(
            self.collection,
            {'_id': message_id, 'status': MessageStatus(expected_status).value},
            {'$set': {'status': MessageStatus(new_status).value}}
        )
        return result['success']
