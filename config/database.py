import logging

from pymongo import MongoClient

from config.settings import settings

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, mongo_uri=None, db_name=None):
        self.mongo_uri = mongo_uri or settings.MONGO_URI
        self.db_name = db_name or settings.DB_NAME
        self.client = None
        self.db = None

    def connect(self):
        """Connect to MongoDB"""
        # MongoClient connects lazily, so this does not block on a down server
        self.client = MongoClient(self.mongo_uri)
        self.db = self.client[self.db_name]
        logger.info("MongoDB client ready for database %s", self.db_name)
        return self.db

    def get_collection(self, collection_name):
        """Get specific collection"""
        if self.db is None:
            self.connect()
        return self.db[collection_name]

    def close(self):
        """Close database connection"""
        if self.client:
            self.client.close()
            self.client = None
            self.db = None

# Global database instance
db_instance = Database()
