"""Collection accessors and index bootstrap for the MongoDB store."""
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

logger = logging.getLogger("Collections")

USERS = "users"
PAYMENTS = "payments"
CASES = "cases"
FILES = "files"
NOTES = "notes"
STANDALONE_NOTES = "standalone_notes"
CONVERSATIONS = "conversations"
BOOKS = "books"
POSTS = "posts"
ANNOUNCEMENTS = "announcements"
MORE_ABOUT_CARDS = "more_about_cards"
LATEST_UPDATES = "latest_updates"


def get_user_collection(db: AsyncIOMotorDatabase):
    return db[USERS]


def get_payment_collection(db: AsyncIOMotorDatabase):
    return db[PAYMENTS]


def get_case_collection(db: AsyncIOMotorDatabase):
    return db[CASES]


def get_file_collection(db: AsyncIOMotorDatabase):
    return db[FILES]


def get_note_collection(db: AsyncIOMotorDatabase):
    return db[NOTES]


def get_standalone_note_collection(db: AsyncIOMotorDatabase):
    return db[STANDALONE_NOTES]


def get_conversation_collection(db: AsyncIOMotorDatabase):
    return db[CONVERSATIONS]


def get_book_collection(db: AsyncIOMotorDatabase):
    return db[BOOKS]


def get_post_collection(db: AsyncIOMotorDatabase):
    return db[POSTS]


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes the application relies on for uniqueness and owner-scoped lookups."""
    await db[USERS].create_index([("email", ASCENDING)], unique=True)
    await db[CASES].create_index([("case_no", ASCENDING)], unique=True)
    await db[CASES].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    await db[CONVERSATIONS].create_index([("user_id", ASCENDING), ("updated_at", DESCENDING)])
    await db[PAYMENTS].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    await db[PAYMENTS].create_index([("external_id", ASCENDING)], sparse=True)
    await db[STANDALONE_NOTES].create_index([("created_by", ASCENDING)])
    logger.info("MongoDB indexes ensured")
