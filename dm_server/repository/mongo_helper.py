from pymongo import MongoClient, ASCENDING
import logging

from config import config

logger = logging.getLogger(__name__)


class MongoRepositorySingleton:
    _db_instance = None

    @classmethod
    def get_db(cls):
        """Singleton utility to get the MongoDB database object.

        Uses config.MONGO_URI and config.MONGO_DB_NAME (MONGO_URI / MONGO_DB
        environment variables override the YAML values).
        """
        if cls._db_instance is not None:
            return cls._db_instance
        logger.info(f"[MongoRepositorySingleton] Connecting to MongoDB DB: {config.MONGO_DB_NAME}")
        client = MongoClient(config.MONGO_URI, tz_aware=True)
        cls._db_instance = client[config.MONGO_DB_NAME]
        return cls._db_instance


def get_db():
    return MongoRepositorySingleton.get_db()


def ensure_indexes(db):
    """Create indexes used by conversation queries (idempotent)."""
    try:
        db['messages'].create_index(
            [('sender_id', ASCENDING), ('receiver_id', ASCENDING), ('created_at', ASCENDING)],
            name='messages_pair_created_at'
        )
        logger.info('Ensured messages indexes')
    except Exception as e:
        logger.exception(f'Error creating indexes: {e}')
