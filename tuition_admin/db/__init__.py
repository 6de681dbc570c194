"""
Database module - MongoDB connection, indexes and sample data.
"""
from tuition_admin.db.mongodb import check_mongo_connection, get_mongo_db, get_student_collection

__all__ = [
    "get_mongo_db",
    "get_student_collection",
    "check_mongo_connection"
]
