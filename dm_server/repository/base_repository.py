from abc import ABC, abstractmethod


class BaseRepository(ABC):
    def __init__(self, db, collection_name):
        self.collection_name = collection_name
        self.collection = db[collection_name]

    @abstractmethod
    def find_one(self, query):
        """Find a single document matching the query."""
        pass
