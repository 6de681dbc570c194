"""
MongoDB Connection Utility

MongoDB stores a single collection:
- students: one document per enrolled student (contact, course, fees)

The client is created by connect_mongo() at application startup and closed
by close_mongo_connection() at shutdown. Route handlers reach the collection
through the get_student_collection() dependency, which tests override.
"""
import logging
from typing import Optional

from pymongo import ASCENDING, DESCENDING, TEXT, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from tuition_admin.core.config import get_settings

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None


# Collection name constants (avoid typos)
COLLECTIONS = {
    "students": "students"
}


def connect_mongo() -> MongoClient:
    """Create the process-wide client. Safe to call more than once."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = MongoClient(
            settings.mongodb_uri,
            serverSelectionTimeoutMS=settings.mongodb_timeout_ms
        )
        logger.info("MongoDB client created for %s", settings.mongodb_db)
    return _client


def close_mongo_connection() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB connection closed")


def get_mongo_db() -> Database:
    """Get the tuition admin database."""
    return connect_mongo()[get_settings().mongodb_db]


def get_collection(name: str) -> Collection:
    return get_mongo_db()[name]


def get_student_collection() -> Collection:
    """FastAPI dependency - the students collection."""
    return get_collection(COLLECTIONS["students"])


def check_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        # ping command checks connection
        connect_mongo().admin.command("ping")
        return True
    except Exception as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


def init_mongo_indexes(collection: Collection = None) -> None:
    """
    Create indexes for the students collection.
    Call this once during app startup.
    """
    students = collection if collection is not None else get_student_collection()

    # Text search over the identifying fields
    students.create_index(
        [("name", TEXT), ("email", TEXT), ("course", TEXT)],
        name="student_text_search"
    )

    # Emails are lowercased before storage, so a plain unique index is case-insensitive
    students.create_index([("email", ASCENDING)], unique=True)

    students.create_index([("course", ASCENDING)])
    students.create_index([("feeStatus", ASCENDING)])
    students.create_index([("joinDate", DESCENDING)])
    students.create_index([("isActive", ASCENDING)])

    logger.info("MongoDB indexes created successfully")
