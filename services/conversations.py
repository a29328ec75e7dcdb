"""
Conversation Store
Owner-scoped, append-only message log per conversation.
"""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from core.exceptions import NotFoundError
from db.collections import get_conversation_collection
from models.chat_schema import BookmarkResponse, ChatMessage, Conversation, ConversationSummary
from utils.clock import relative_time, utcnow
from utils.ids import parse_object_id

logger = logging.getLogger("ConversationStore")

DEFAULT_TITLE = "New Conversation"
TITLE_CHARS = 50
PREVIEW_CHARS = 100


def _owner_query(conversation_id: str, user_id: str) -> dict:
    return {"_id": parse_object_id(conversation_id, "Conversation"), "user_id": ObjectId(user_id)}


def _new_document(user_id: str, title: str, now: datetime) -> dict:
    return {
        "user_id": ObjectId(user_id),
        "title": title,
        "messages": [],
        "is_bookmarked": False,
        "created_at": now,
        "updated_at": now,
    }


async def create_conversation(db: AsyncIOMotorDatabase, user_id: str, title: Optional[str] = None) -> Conversation:
    doc = _new_document(user_id, title or DEFAULT_TITLE, utcnow())
    result = await get_conversation_collection(db).insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info(f"Conversation {result.inserted_id} created for user {user_id}")
    return Conversation.from_document(doc)


async def list_summaries(db: AsyncIOMotorDatabase, user_id: str, now: Optional[datetime] = None) -> List[ConversationSummary]:
    """
    List the user's conversations, most recently updated first.

    Args:
        db: Database connection
        user_id: Owner
        now: Reference time for the relative dates

    Returns:
        One summary per conversation with a preview of the last message
    """
    now = now or utcnow()
    cursor = get_conversation_collection(db).find({"user_id": ObjectId(user_id)}).sort("updated_at", -1)

    summaries = []
    async for doc in cursor:
        messages = doc.get("messages", [])
        summaries.append(
            ConversationSummary(
                id=str(doc["_id"]),
                title=doc["title"],
                preview=messages[-1]["content"][:PREVIEW_CHARS] if messages else "",
                date=relative_time(doc["updated_at"], now),
                messages=len(messages),
                is_bookmarked=doc.get("is_bookmarked", False),
            )
        )
    return summaries


async def get_conversation(db: AsyncIOMotorDatabase, conversation_id: str, user_id: str) -> Conversation:
    doc = await get_conversation_collection(db).find_one(_owner_query(conversation_id, user_id))
    if doc is None:
        raise NotFoundError("Conversation")
    return Conversation.from_document(doc)


async def find_conversation(db: AsyncIOMotorDatabase, conversation_id: Optional[str], user_id: str) -> Optional[Conversation]:
    """Like ``get_conversation`` but returns None for a missing, foreign or malformed id."""
    if not conversation_id:
        return None
    try:
        return await get_conversation(db, conversation_id, user_id)
    except NotFoundError:
        return None


async def append_exchange(
    db: AsyncIOMotorDatabase,
    user_id: str,
    conversation_id: Optional[str],
    user_text: str,
    assistant_text: str,
    sources: Sequence[str] = (),
    now: Optional[datetime] = None,
) -> Conversation:
    """
    Append one user message and its reply.

    Both messages go in with a single ``$push`` so concurrent requests on the
    same conversation never lose each other's messages. When no usable
    conversation id is given a new conversation is started, titled after the
    user's message.

    Returns:
        The conversation after the append
    """
    now = now or utcnow()
    conversations = get_conversation_collection(db)
    messages = [
        ChatMessage(role="user", content=user_text, timestamp=now).model_dump(),
        ChatMessage(role="assistant", content=assistant_text, timestamp=now, sources=list(sources)).model_dump(),
    ]

    doc = None
    if conversation_id and ObjectId.is_valid(conversation_id):
        doc = await conversations.find_one_and_update(
            {"_id": ObjectId(conversation_id), "user_id": ObjectId(user_id)},
            {"$push": {"messages": {"$each": messages}}, "$set": {"updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )

    if doc is None:
        doc = _new_document(user_id, user_text[:TITLE_CHARS], now)
        doc["messages"] = messages
        result = await conversations.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info(f"Conversation {result.inserted_id} started for user {user_id}")

    return Conversation.from_document(doc)


async def delete_conversation(db: AsyncIOMotorDatabase, conversation_id: str, user_id: str) -> None:
    result = await get_conversation_collection(db).delete_one(_owner_query(conversation_id, user_id))
    if not result.deleted_count:
        raise NotFoundError("Conversation")
    logger.info(f"Conversation {conversation_id} deleted by user {user_id}")


async def toggle_bookmark(db: AsyncIOMotorDatabase, conversation_id: str, user_id: str) -> BookmarkResponse:
    conversations = get_conversation_collection(db)
    query = _owner_query(conversation_id, user_id)
    doc = await conversations.find_one(query, {"is_bookmarked": 1})
    if doc is None:
        raise NotFoundError("Conversation")

    flipped = not doc.get("is_bookmarked", False)
    await conversations.update_one(query, {"$set": {"is_bookmarked": flipped}})
    return BookmarkResponse(is_bookmarked=flipped)
