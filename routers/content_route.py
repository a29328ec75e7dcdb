import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.deps import get_current_account, require_roles
from core.roles import UserRole
from db.connection import get_db
from models.auth_schema import MessageResponse
from models.user_schema import UserAccount
from services import content
from services.content import (
    ANNOUNCEMENT_CONTENT,
    LATEST_UPDATE_CONTENT,
    MORE_ABOUT_CONTENT,
    POST_CONTENT,
    ContentCollection,
)
from utils.encryption import AuthenticatedUser

router = APIRouter()
logger = logging.getLogger("ContentRouter")

admin_only = require_roles(UserRole.admin)


def register_collection(prefix: str, kind: ContentCollection, public_get: bool = True) -> None:
    """Public list/get plus admin create/update/delete for one content collection."""
    schema = kind.schema

    @router.get(prefix, name=f"list_{kind.name}")
    async def list_items(category: Optional[str] = None, db: AsyncIOMotorDatabase = Depends(get_db)):
        return await content.list_items(db, kind, category=category)

    if public_get:
        @router.get(f"{prefix}/{{item_id}}", name=f"get_{kind.name}")
        async def get_item(item_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
            return await content.get_item(db, kind, item_id)

    @router.post(prefix, status_code=status.HTTP_201_CREATED, name=f"create_{kind.name}")
    async def create_item(
        payload: schema,
        _: AuthenticatedUser = Depends(admin_only),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        return await content.create_item(db, kind, payload)

    @router.put(f"{prefix}/{{item_id}}", name=f"update_{kind.name}")
    async def update_item(
        item_id: str,
        payload: schema,
        _: AuthenticatedUser = Depends(admin_only),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        return await content.update_item(db, kind, item_id, payload)

    @router.delete(f"{prefix}/{{item_id}}", response_model=MessageResponse, name=f"delete_{kind.name}")
    async def delete_item(
        item_id: str,
        _: AuthenticatedUser = Depends(admin_only),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        await content.delete_item(db, kind, item_id)
        return {"message": f"{kind.entity} deleted successfully"}


@router.get("/blog-data")
async def blog_data(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await content.blog_data(db)


@router.get("/posts/{post_id}")
async def get_full_post(
    post_id: str,
    account: UserAccount = Depends(get_current_account),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await content.get_full_post(db, post_id, account)


register_collection("/posts", POST_CONTENT, public_get=False)
register_collection("/announcements", ANNOUNCEMENT_CONTENT)
register_collection("/more-about-cards", MORE_ABOUT_CONTENT)
register_collection("/latest-updates", LATEST_UPDATE_CONTENT)
