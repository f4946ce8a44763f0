import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId

from dm_server.repository.base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Never leave the store
_PRIVATE_FIELDS = {'password': 0}


def _id_candidates(user_id: str) -> list:
    """Accounts may be keyed by ObjectId or by plain string ids."""
    candidates = [user_id]
    if ObjectId.is_valid(user_id):
        candidates.append(ObjectId(user_id))
    return candidates


class UserRepository(BaseRepository):
    """Read access to chat participants.

    Accounts are created and managed elsewhere; this process only looks
    users up and lists contacts.
    """

    def __init__(self, db, collection_name="users"):
        super().__init__(db, collection_name)
        logger.debug(f"Initializing {self.collection_name} collection")

    def find(self, query=None):
        return list(self.collection.find(query or {}, _PRIVATE_FIELDS))

    def find_one(self, query):
        return self.collection.find_one(query, _PRIVATE_FIELDS)

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        if not isinstance(user_id, str) or not user_id:
            return None
        return self.find_one({'_id': {'$in': _id_candidates(user_id)}})

    def list_contacts(self, exclude_user_id: str) -> List[Dict[str, Any]]:
        """Every user except the caller (no contact graph in direct chat)."""
        return self.find({'_id': {'$nin': _id_candidates(exclude_user_id)}})
