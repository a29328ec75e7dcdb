"""
Case management.

Every query is scoped to the requesting user. Attachment entries are stored
inside the case document and point at ``files`` / ``notes`` documents; removing
an entry, or the whole case, removes what it points at.
"""
import logging
from typing import Any, Dict, List

from bson import ObjectId
from fastapi import UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from core.exceptions import ConflictError, InputValidationError, NotFoundError
from db.collections import get_case_collection, get_file_collection, get_note_collection
from models.case_schema import (
    CaseCreate,
    CaseNoteCreate,
    CaseRecord,
    CaseSection,
    CaseStatus,
    CaseUpdate,
    FileRecord,
    NoteRecord,
    NoteUpdate,
)
from models.user_schema import UserAccount
from services import usage
from services.entitlement import QuotaResource
from utils.clock import as_naive_utc, utcnow
from utils.file_storage import is_allowed_case_file, remove_stored, save_upload
from utils.ids import parse_object_id

logger = logging.getLogger("CaseService")

DUPLICATE_CASE_NO = "Case number already exists"


def _case_query(case_id: str, user_id: str) -> Dict[str, Any]:
    return {"_id": parse_object_id(case_id, "Case"), "user_id": ObjectId(user_id)}


def _section(value: str) -> CaseSection:
    try:
        return CaseSection.parse(value)
    except ValueError:
        raise InputValidationError("sectionType", f"Unknown section: {value}")


async def list_cases(db: AsyncIOMotorDatabase, user_id: str) -> List[CaseRecord]:
    cursor = get_case_collection(db).find({"user_id": ObjectId(user_id)}).sort("created_at", -1)
    return [CaseRecord.from_document(doc) async for doc in cursor]


async def get_case(db: AsyncIOMotorDatabase, case_id: str, user_id: str) -> CaseRecord:
    doc = await get_case_collection(db).find_one(_case_query(case_id, user_id))
    if doc is None:
        raise NotFoundError("Case")
    return CaseRecord.from_document(doc)


async def create_case(db: AsyncIOMotorDatabase, user: UserAccount, payload: CaseCreate) -> CaseRecord:
    """
    Create a case, taking one unit of the caller's case quota.

    Raises:
        EntitlementError: trial quota used up or no active access
        ConflictError: case number already taken
    """
    decision = await usage.consume(db, user, QuotaResource.case)

    now = utcnow()
    doc = payload.model_dump()
    doc.update({
        "status": payload.status.value,
        "on_behalf_of": payload.on_behalf_of.value,
        "next_hearing": as_naive_utc(payload.next_hearing),
        "user_id": ObjectId(user.id),
        "created_at": now,
        "updated_at": now,
    })
    for section in CaseSection:
        doc[section.value] = []

    try:
        result = await get_case_collection(db).insert_one(doc)
    except DuplicateKeyError:
        await usage.release(db, user, decision)
        raise ConflictError(DUPLICATE_CASE_NO)

    doc["_id"] = result.inserted_id
    logger.info(f"Case {payload.case_no} created by user {user.id}")
    return CaseRecord.from_document(doc)


async def update_case(db: AsyncIOMotorDatabase, case_id: str, user_id: str, payload: CaseUpdate) -> CaseRecord:
    changes = payload.model_dump(exclude_none=True, mode="json")
    if "next_hearing" in changes:
        changes["next_hearing"] = as_naive_utc(payload.next_hearing)
    changes["updated_at"] = utcnow()

    try:
        doc = await get_case_collection(db).find_one_and_update(
            _case_query(case_id, user_id),
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise ConflictError(DUPLICATE_CASE_NO)

    if doc is None:
        raise NotFoundError("Case")
    return CaseRecord.from_document(doc)


async def update_status(db: AsyncIOMotorDatabase, case_id: str, user_id: str, status: CaseStatus) -> CaseRecord:
    doc = await get_case_collection(db).find_one_and_update(
        _case_query(case_id, user_id),
        {"$set": {"status": status.value, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFoundError("Case")
    return CaseRecord.from_document(doc)


async def _delete_file(db: AsyncIOMotorDatabase, file_id: ObjectId, user_id: str) -> None:
    doc = await get_file_collection(db).find_one_and_delete({"_id": file_id, "uploaded_by": ObjectId(user_id)})
    if doc is not None:
        remove_stored(doc["relative_path"])


async def _delete_note(db: AsyncIOMotorDatabase, note_id: ObjectId, user_id: str) -> None:
    await get_note_collection(db).delete_one({"_id": note_id, "created_by": ObjectId(user_id)})


async def delete_case(db: AsyncIOMotorDatabase, case_id: str, user_id: str) -> None:
    doc = await get_case_collection(db).find_one_and_delete(_case_query(case_id, user_id))
    if doc is None:
        raise NotFoundError("Case")

    removed = 0
    for section in CaseSection:
        for entry in doc.get(section.value, []):
            if entry.get("kind") == "file":
                await _delete_file(db, entry["file_id"], user_id)
            else:
                await _delete_note(db, entry["note_id"], user_id)
            removed += 1
    logger.info(f"Case {case_id} deleted by user {user_id} with {removed} attachments")


async def _push_attachment(db: AsyncIOMotorDatabase, case_id: str, user_id: str, section: CaseSection, entries: List[dict]) -> None:
    result = await get_case_collection(db).update_one(
        _case_query(case_id, user_id),
        {"$push": {section.value: {"$each": entries}}, "$set": {"updated_at": utcnow()}},
    )
    if not result.matched_count:
        raise NotFoundError("Case")


async def add_note(db: AsyncIOMotorDatabase, case_id: str, user: UserAccount, payload: CaseNoteCreate) -> NoteRecord:
    """Create a note and attach it to a section of the case; counts against the note quota."""
    section = _section(payload.section_type)
    await get_case(db, case_id, user.id)
    decision = await usage.consume(db, user, QuotaResource.note)

    now = utcnow()
    note = {
        "title": payload.title,
        "content": payload.content,
        "created_by": ObjectId(user.id),
        "created_at": now,
        "updated_at": now,
    }
    result = await get_note_collection(db).insert_one(note)
    note["_id"] = result.inserted_id

    entry = {"kind": "note", "note_id": result.inserted_id, "name": payload.title, "added_at": now}
    try:
        await _push_attachment(db, case_id, user.id, section, [entry])
    except NotFoundError:
        # The case vanished between the ownership check and the push.
        await get_note_collection(db).delete_one({"_id": result.inserted_id})
        await usage.release(db, user, decision)
        raise

    return NoteRecord.from_document(note)


async def upload_files(
    db: AsyncIOMotorDatabase,
    case_id: str,
    user_id: str,
    section_type: str,
    uploads: List[UploadFile],
) -> List[FileRecord]:
    section = _section(section_type)
    if not uploads:
        raise InputValidationError("files", "No files uploaded")
    for upload in uploads:
        if not is_allowed_case_file(upload.content_type):
            raise InputValidationError("files", "Only PDF and image files are allowed")

    await get_case(db, case_id, user_id)

    records: List[FileRecord] = []
    entries: List[dict] = []
    for upload in uploads:
        relative_path, size = await save_upload(upload, "cases")
        now = utcnow()
        doc = {
            "original_name": upload.filename,
            "relative_path": relative_path,
            "mimetype": upload.content_type,
            "size": size,
            "uploaded_by": ObjectId(user_id),
            "uploaded_at": now,
        }
        result = await get_file_collection(db).insert_one(doc)
        doc["_id"] = result.inserted_id
        records.append(FileRecord.from_document(doc))
        entries.append({"kind": "file", "file_id": result.inserted_id, "name": upload.filename, "added_at": now})

    await _push_attachment(db, case_id, user_id, section, entries)
    logger.info(f"{len(records)} files uploaded to case {case_id} ({section.value})")
    return records


async def delete_item(
    db: AsyncIOMotorDatabase,
    case_id: str,
    item_id: str,
    user_id: str,
    section_type: str,
    item_type: str,
) -> None:
    """Remove an attachment entry and the File or Note it references."""
    section = _section(section_type)
    if item_type not in ("file", "note"):
        raise InputValidationError("itemType", "itemType must be 'file' or 'note'")
    oid = parse_object_id(item_id, "Item")

    result = await get_case_collection(db).update_one(
        _case_query(case_id, user_id),
        {"$pull": {section.value: {"kind": item_type, f"{item_type}_id": oid}}},
    )
    if not result.matched_count:
        raise NotFoundError("Case")
    if not result.modified_count:
        raise NotFoundError("Item")

    if item_type == "file":
        await _delete_file(db, oid, user_id)
    else:
        await _delete_note(db, oid, user_id)
    logger.info(f"{item_type} {item_id} removed from case {case_id}")


async def get_note(db: AsyncIOMotorDatabase, note_id: str, user_id: str) -> NoteRecord:
    doc = await get_note_collection(db).find_one(
        {"_id": parse_object_id(note_id, "Note"), "created_by": ObjectId(user_id)}
    )
    if doc is None:
        raise NotFoundError("Note")
    return NoteRecord.from_document(doc)


async def update_note(db: AsyncIOMotorDatabase, note_id: str, user_id: str, payload: NoteUpdate) -> NoteRecord:
    changes: Dict[str, Any] = payload.model_dump(exclude_none=True)
    changes["updated_at"] = utcnow()
    doc = await get_note_collection(db).find_one_and_update(
        {"_id": parse_object_id(note_id, "Note"), "created_by": ObjectId(user_id)},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFoundError("Note")
    return NoteRecord.from_document(doc)


async def get_file_document(db: AsyncIOMotorDatabase, file_id: str, user_id: str) -> Dict[str, Any]:
    doc = await get_file_collection(db).find_one(
        {"_id": parse_object_id(file_id, "File"), "uploaded_by": ObjectId(user_id)}
    )
    if doc is None:
        raise NotFoundError("File")
    return doc


async def get_file(db: AsyncIOMotorDatabase, file_id: str, user_id: str) -> FileRecord:
    return FileRecord.from_document(await get_file_document(db, file_id, user_id))
