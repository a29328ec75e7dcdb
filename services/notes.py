import logging
import re
from typing import List

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from core.exceptions import NotFoundError
from db.collections import get_standalone_note_collection
from models.case_schema import StandaloneNoteCreate, StandaloneNoteRecord
from models.user_schema import UserAccount
from services import usage
from services.entitlement import QuotaResource
from utils.clock import utcnow
from utils.ids import parse_object_id

logger = logging.getLogger("NoteService")


def _owner_query(note_id: str, user_id: str) -> dict:
    return {"_id": parse_object_id(note_id, "Note"), "created_by": ObjectId(user_id)}


async def list_notes(db: AsyncIOMotorDatabase, user_id: str) -> List[StandaloneNoteRecord]:
    cursor = get_standalone_note_collection(db).find({"created_by": ObjectId(user_id)}).sort("created_at", -1)
    return [StandaloneNoteRecord.from_document(doc) async for doc in cursor]


async def get_note(db: AsyncIOMotorDatabase, note_id: str, user_id: str) -> StandaloneNoteRecord:
    doc = await get_standalone_note_collection(db).find_one(_owner_query(note_id, user_id))
    if doc is None:
        raise NotFoundError("Note")
    return StandaloneNoteRecord.from_document(doc)


async def create_note(db: AsyncIOMotorDatabase, user: UserAccount, payload: StandaloneNoteCreate) -> StandaloneNoteRecord:
    """Personal notes share the note quota with case notes."""
    await usage.consume(db, user, QuotaResource.note)

    now = utcnow()
    doc = {
        "title": payload.title,
        "content": payload.content,
        "created_by": ObjectId(user.id),
        "created_at": now,
        "updated_at": now,
    }
    result = await get_standalone_note_collection(db).insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info(f"Standalone note {result.inserted_id} created by user {user.id}")
    return StandaloneNoteRecord.from_document(doc)


async def update_note(db: AsyncIOMotorDatabase, note_id: str, user_id: str, payload: StandaloneNoteCreate) -> StandaloneNoteRecord:
    doc = await get_standalone_note_collection(db).find_one_and_update(
        _owner_query(note_id, user_id),
        {"$set": {"title": payload.title, "content": payload.content, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFoundError("Note")
    return StandaloneNoteRecord.from_document(doc)


async def delete_note(db: AsyncIOMotorDatabase, note_id: str, user_id: str) -> None:
    result = await get_standalone_note_collection(db).delete_one(_owner_query(note_id, user_id))
    if not result.deleted_count:
        raise NotFoundError("Note")


async def search_notes(db: AsyncIOMotorDatabase, user_id: str, query: str) -> List[StandaloneNoteRecord]:
    pattern = {"$regex": re.escape(query), "$options": "i"}
    cursor = get_standalone_note_collection(db).find(
        {"created_by": ObjectId(user_id), "$or": [{"title": pattern}, {"content": pattern}]}
    ).sort("created_at", -1)
    return [StandaloneNoteRecord.from_document(doc) async for doc in cursor]
