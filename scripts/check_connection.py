#!/usr/bin/env python3
"""
Connection Test Script

Run this to verify MongoDB is reachable with the current settings.
Usage: python scripts/check_connection.py
"""
import sys
sys.path.insert(0, '.')

from tuition_admin.core.config import get_settings
from tuition_admin.db.mongodb import check_mongo_connection, close_mongo_connection, get_student_collection


def main() -> int:
    settings = get_settings()
    print("=" * 50)
    print("TUITION ADMIN - CONNECTION TEST")
    print("=" * 50)

    print("\n[1] Testing MongoDB...")
    print(f"    URI: {settings.mongodb_uri}")
    print(f"    Database: {settings.mongodb_db}")
    if not check_mongo_connection():
        print("    ❌ MongoDB: FAILED")
        print("    💡 Make sure MongoDB is running (mongod)")
        return 1
    print("    ✅ MongoDB: CONNECTED")

    print("\n[2] Students collection...")
    print(f"    📊 {get_student_collection().count_documents({})} students stored")

    close_mongo_connection()
    print("\n" + "=" * 50)
    print("Connection test complete!")
    print("=" * 50)
    return 0


if __name__ == "__main__":
    sys.exit(main())
