"""
Populate the user collection with one admin and one standard account.

    python seed.py

Existing users are removed first, so running it again leaves the same two
records. Any failure aborts with exit status 1.
"""
import logging
import sys
from typing import List

from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
from auth import hash_password
from database import connect
from errors import StoreError
from schemas import User

logger = logging.getLogger(__name__)

SEED_USERS = [
    {"name": "Admin User", "email": "admin@example.com", "password": "admin123", "is_admin": True},
    {"name": "Test User", "email": "test@example.com", "password": "password123", "is_admin": False},
]


def seed_users(db: Database) -> List[str]:
    deleted = db["user"].delete_many({}).deleted_count
    logger.info("Cleared %d existing users", deleted)

    docs = []
    for entry in SEED_USERS:
        user = User(
            name=entry["name"],
            email=entry["email"],
            password=hash_password(entry["password"]),
            role="admin" if entry["is_admin"] else "user",
            is_admin=entry["is_admin"],
            is_active=True,
            email_verified=True,
        )
        docs.append(user.model_dump())

    result = db["user"].insert_many(docs)
    return [str(i) for i in result.inserted_ids]


def main() -> int:
    config.configure_logging()
    try:
        db = connect(config.DATABASE_URL, config.DATABASE_NAME)
        seed_users(db)
    except (StoreError, PyMongoError) as e:
        logger.error("Error seeding database: %s", e)
        return 1
    logger.info("Database seeded successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
