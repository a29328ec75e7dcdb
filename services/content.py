"""
Public content collections: articles (posts), announcements, "more about"
cards and latest updates. Reads are public; writes are admin-only at the router.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ReturnDocument

from core.exceptions import EntitlementError, NotFoundError
from db.collections import (
    ANNOUNCEMENTS,
    BOOKS,
    LATEST_UPDATES,
    MORE_ABOUT_CARDS,
    POSTS,
    STANDALONE_NOTES,
    USERS,
    get_post_collection,
)
from models.content_schema import (
    AnnouncementCreate,
    LatestUpdateCreate,
    MoreAboutCardCreate,
    PostCreate,
    PostType,
)
from models.user_schema import UserAccount
from services.books import stats_by_category
from services.entitlement import has_active_subscription
from utils.clock import utcnow
from utils.ids import parse_object_id

logger = logging.getLogger("ContentService")

BLOG_TAGS = ["Law-Tech", "Updates", "Pakistan", "Legal"]


@dataclass(frozen=True)
class ContentCollection:
    name: str
    entity: str
    schema: Type[BaseModel]
    sort_field: str = "created_at"


POST_CONTENT = ContentCollection(POSTS, "Post", PostCreate)
ANNOUNCEMENT_CONTENT = ContentCollection(ANNOUNCEMENTS, "Announcement", AnnouncementCreate)
MORE_ABOUT_CONTENT = ContentCollection(MORE_ABOUT_CARDS, "Card", MoreAboutCardCreate)
LATEST_UPDATE_CONTENT = ContentCollection(LATEST_UPDATES, "Update", LatestUpdateCreate)


def serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Render a stored document for clients: string id, camelCase keys."""
    out: Dict[str, Any] = {"id": str(doc["_id"])}
    for key, value in doc.items():
        if key == "_id":
            continue
        parts = key.split("_")
        out[parts[0] + "".join(p.title() for p in parts[1:])] = value
    return out


async def list_items(db: AsyncIOMotorDatabase, kind: ContentCollection, **filters: Any) -> List[Dict[str, Any]]:
    query = {k: v for k, v in filters.items() if v is not None}
    cursor = db[kind.name].find(query).sort(kind.sort_field, -1)
    return [serialize(doc) async for doc in cursor]


async def get_item(db: AsyncIOMotorDatabase, kind: ContentCollection, item_id: str) -> Dict[str, Any]:
    doc = await db[kind.name].find_one({"_id": parse_object_id(item_id, kind.entity)})
    if doc is None:
        raise NotFoundError(kind.entity)
    return serialize(doc)


async def create_item(db: AsyncIOMotorDatabase, kind: ContentCollection, payload: BaseModel) -> Dict[str, Any]:
    now = utcnow()
    doc = payload.model_dump(mode="json")
    doc.update({"created_at": now, "updated_at": now})
    result = await db[kind.name].insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info(f"{kind.entity} {result.inserted_id} created")
    return serialize(doc)


async def update_item(db: AsyncIOMotorDatabase, kind: ContentCollection, item_id: str, payload: BaseModel) -> Dict[str, Any]:
    changes = payload.model_dump(mode="json")
    changes["updated_at"] = utcnow()
    doc = await db[kind.name].find_one_and_update(
        {"_id": parse_object_id(item_id, kind.entity)},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFoundError(kind.entity)
    return serialize(doc)


async def delete_item(db: AsyncIOMotorDatabase, kind: ContentCollection, item_id: str) -> None:
    result = await db[kind.name].delete_one({"_id": parse_object_id(item_id, kind.entity)})
    if not result.deleted_count:
        raise NotFoundError(kind.entity)
    logger.info(f"{kind.entity} {item_id} deleted")


async def blog_data(db: AsyncIOMotorDatabase) -> Dict[str, Any]:
    posts = [serialize(doc) async for doc in get_post_collection(db).find({})]
    categories = list(dict.fromkeys(p["category"] for p in posts if p.get("category")))
    return {
        "categories": categories,
        "tags": BLOG_TAGS,
        "pickedCards": [p for p in posts if p.get("type") == PostType.picked.value],
        "latestPosts": [p for p in posts if p.get("type") == PostType.latest.value],
        "featuredPosts": [p for p in posts if p.get("type") == PostType.featured.value],
    }


async def get_full_post(db: AsyncIOMotorDatabase, post_id: str, user: UserAccount, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Full article body is reserved for users with an active subscription or trial."""
    post = await get_item(db, POST_CONTENT, post_id)
    if not has_active_subscription(user, now or utcnow()):
        raise EntitlementError("Subscription required to view full content", reason="subscription_required")
    return post


async def dashboard_stats(db: AsyncIOMotorDatabase) -> Dict[str, Any]:
    return {
        "totalMoreAboutCards": await db[MORE_ABOUT_CARDS].count_documents({}),
        "totalLatestUpdates": await db[LATEST_UPDATES].count_documents({}),
        "totalAnnouncements": await db[ANNOUNCEMENTS].count_documents({}),
        "totalPosts": await db[POSTS].count_documents({}),
        "totalUsers": await db[USERS].count_documents({}),
        "totalBooks": await db[BOOKS].count_documents({"is_active": True}),
        "totalStandaloneNotes": await db[STANDALONE_NOTES].count_documents({}),
        "booksByCategory": await stats_by_category(db),
    }
