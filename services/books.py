import logging
import os
import re
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from core.exceptions import NotFoundError
from db.collections import get_book_collection
from models.content_schema import BookCategory, BookCreate, BookRecord, BookUpdate
from models.user_schema import UserAccount
from services import usage
from services.entitlement import QuotaResource
from utils.clock import as_naive_utc, utcnow
from utils.file_storage import absolute_path
from utils.ids import parse_object_id

logger = logging.getLogger("BookService")


def _file_size_label(relative_path: str) -> str:
    path = absolute_path(relative_path)
    if not os.path.isfile(path):
        return ""
    return f"{os.path.getsize(path) / (1024 * 1024):.2f} MB"


async def list_books(
    db: AsyncIOMotorDatabase,
    category: Optional[BookCategory] = None,
    search: Optional[str] = None,
) -> List[BookRecord]:
    query: Dict[str, Any] = {"is_active": True}
    if category:
        query["category"] = category.value
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"title": pattern}, {"description": pattern}, {"author": pattern}]

    cursor = get_book_collection(db).find(query).sort("created_at", -1)
    return [BookRecord.from_document(doc) async for doc in cursor]


async def get_book(db: AsyncIOMotorDatabase, book_id: str) -> BookRecord:
    doc = await get_book_collection(db).find_one({"_id": parse_object_id(book_id, "Book")})
    if doc is None:
        raise NotFoundError("Book")
    return BookRecord.from_document(doc)


async def create_book(db: AsyncIOMotorDatabase, payload: BookCreate) -> BookRecord:
    doc = payload.model_dump(mode="json")
    doc.update({
        "published_date": as_naive_utc(payload.published_date),
        "file_size": _file_size_label(payload.pdf_file),
        "downloads": 0,
        "is_active": True,
        "created_at": utcnow(),
    })
    result = await get_book_collection(db).insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info(f"Book '{payload.title}' added")
    return BookRecord.from_document(doc)


async def update_book(db: AsyncIOMotorDatabase, book_id: str, payload: BookUpdate) -> BookRecord:
    changes = payload.model_dump(exclude_none=True, mode="json")
    if payload.published_date is not None:
        changes["published_date"] = as_naive_utc(payload.published_date)
    if payload.pdf_file is not None:
        changes["file_size"] = _file_size_label(payload.pdf_file)

    doc = await get_book_collection(db).find_one_and_update(
        {"_id": parse_object_id(book_id, "Book")},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFoundError("Book")
    return BookRecord.from_document(doc)


async def delete_book(db: AsyncIOMotorDatabase, book_id: str) -> None:
    result = await get_book_collection(db).delete_one({"_id": parse_object_id(book_id, "Book")})
    if not result.deleted_count:
        raise NotFoundError("Book")
    logger.info(f"Book {book_id} deleted")


async def prepare_download(db: AsyncIOMotorDatabase, book_id: str, user: UserAccount) -> Tuple[str, str]:
    """
    Take one unit of the download quota and count the download.

    Returns:
        (absolute path of the PDF, download filename)
    """
    oid = parse_object_id(book_id, "Book")
    books = get_book_collection(db)
    book = await books.find_one({"_id": oid, "is_active": True})
    if book is None:
        raise NotFoundError("Book")

    path = absolute_path(book["pdf_file"])
    if not os.path.isfile(path):
        logger.error(f"PDF for book {book_id} missing on disk: {book['pdf_file']}")
        raise NotFoundError("Book file")

    await usage.consume(db, user, QuotaResource.book_download)
    await books.update_one({"_id": oid}, {"$inc": {"downloads": 1}})
    logger.info(f"Book {book_id} downloaded by user {user.id}")
    return path, f"{book['title']}.pdf"


async def stats_by_category(db: AsyncIOMotorDatabase) -> List[Dict[str, Any]]:
    cursor = get_book_collection(db).aggregate([
        {"$match": {"is_active": True}},
        {"$group": {"_id": "$category", "count": {"$sum": 1}}},
    ])
    return [{"category": row["_id"], "count": row["count"]} async for row in cursor]
