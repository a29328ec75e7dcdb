import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from core.exceptions import AuthenticationError, ConflictError, NotFoundError
from core.roles import UserRole
from db.collections import get_user_collection
from models.auth_schema import RegisterRequest
from models.user_schema import ProfileCompletionRequest, UserAccount
from services.subscription import trial_fields
from utils.clock import utcnow
from utils.encryption import hash_password, verify_password
from utils.ids import parse_object_id

logger = logging.getLogger("AccountService")


async def register_account(db: AsyncIOMotorDatabase, request: RegisterRequest) -> UserAccount:
    """Create a user on a fresh trial."""
    users = get_user_collection(db)
    email = request.email.lower()
    if await users.find_one({"email": email}, {"_id": 1}):
        raise ConflictError("User already exists")

    now = utcnow()
    doc = {
        "email": email,
        "password": hash_password(request.password),
        "name": request.name,
        "role": UserRole.user.value,
        "onboarding_completed": False,
        "created_at": now,
        **trial_fields(now),
    }
    try:
        result = await users.insert_one(doc)
    except DuplicateKeyError:
        raise ConflictError("User already exists")

    doc["_id"] = result.inserted_id
    logger.info(f"User {email} registered, trial until {doc['trial_end_date']}")
    return UserAccount.from_document(doc)


async def authenticate(db: AsyncIOMotorDatabase, email: str, password: str) -> UserAccount:
    doc = await get_user_collection(db).find_one({"email": email.lower()})
    if not doc or not verify_password(password, doc["password"]):
        logger.warning(f"Failed login attempt for {email}")
        raise AuthenticationError("Invalid email or password")
    return UserAccount.from_document(doc)


async def load_account(db: AsyncIOMotorDatabase, user_id: str) -> UserAccount:
    doc = await get_user_collection(db).find_one({"_id": parse_object_id(user_id, "User")})
    if doc is None:
        raise NotFoundError("User")
    return UserAccount.from_document(doc)


async def complete_profile(db: AsyncIOMotorDatabase, user_id: str, request: ProfileCompletionRequest) -> UserAccount:
    changes = request.model_dump()
    changes.update({"onboarding_completed": True, "updated_at": utcnow()})
    doc = await get_user_collection(db).find_one_and_update(
        {"_id": parse_object_id(user_id, "User")},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFoundError("User")
    logger.info(f"Profile completed for user {user_id}")
    return UserAccount.from_document(doc)


async def seed_admin(db: AsyncIOMotorDatabase, email: Optional[str], password: Optional[str]) -> bool:
    """Create the configured admin account if it does not exist yet."""
    if not email or not password:
        return False

    users = get_user_collection(db)
    email = email.lower()
    if await users.find_one({"email": email}, {"_id": 1}):
        return False

    now = utcnow()
    await users.insert_one({
        "email": email,
        "password": hash_password(password),
        "name": "Administrator",
        "role": UserRole.admin.value,
        "onboarding_completed": True,
        "created_at": now,
        **trial_fields(now),
    })
    logger.info(f"Admin account {email} seeded")
    return True
