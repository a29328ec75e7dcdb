"""Reusable FastAPI dependency functions."""
from typing import Callable

from fastapi import Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.exceptions import AuthenticationError, NotFoundError
from core.roles import UserRole
from db.collections import get_user_collection
from db.connection import get_db
from models.user_schema import UserAccount
from utils.encryption import AuthenticatedUser, get_current_user
from utils.ids import parse_object_id


def require_roles(*roles: UserRole) -> Callable[[AuthenticatedUser], AuthenticatedUser]:
    """Return a dependency that ensures the current user has one of the given roles."""

    def _checker(current_user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return current_user

    return _checker


async def get_current_account(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> UserAccount:
    """Load the full user document behind the token."""
    try:
        user_id = parse_object_id(current_user.user_id, "User")
    except NotFoundError:
        raise AuthenticationError("Invalid token payload")

    doc = await get_user_collection(db).find_one({"_id": user_id})
    if doc is None:
        raise AuthenticationError("User no longer exists")
    return UserAccount.from_document(doc)
