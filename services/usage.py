"""
Daily usage counters.

The counters live on the user document (``usage.*``) and are only ever touched
here: a lazy reset on the first check of a new UTC day, and an atomic
"increment only while below the limit" update so two concurrent requests from
the same trial user cannot both take the last unit.
"""
import logging
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from core.exceptions import EntitlementError
from db.collections import get_user_collection
from models.user_schema import UsageCounters, UsageSummary, UserAccount
from services.entitlement import (
    DecisionReason,
    EntitlementDecision,
    QuotaResource,
    check_quota,
)
from utils.clock import start_of_utc_day, utcnow

logger = logging.getLogger("UsageCounters")

_RESOURCE_LABELS = {
    QuotaResource.case: "cases",
    QuotaResource.note: "notes",
    QuotaResource.book_download: "book downloads",
}


async def reset_if_new_day(db: AsyncIOMotorDatabase, user: UserAccount, now: datetime) -> bool:
    """
    Zero the counters if the last reset happened on an earlier UTC day.

    The filter makes the reset happen at most once per day even under
    concurrent requests. The in-memory ``user`` is updated to match.

    Returns:
        True if this call performed the reset
    """
    day_start = start_of_utc_day(now)
    result = await get_user_collection(db).update_one(
        {
            "_id": ObjectId(user.id),
            "$or": [
                {"usage.last_reset_date": {"$lt": day_start}},
                {"usage.last_reset_date": None},
            ],
        },
        {
            "$set": {
                "usage.cases_created": 0,
                "usage.notes_created": 0,
                "usage.books_downloaded": 0,
                "usage.last_reset_date": now,
            }
        },
    )
    if result.modified_count:
        user.usage = UsageCounters(last_reset_date=now)
        logger.info(f"Daily usage counters reset for user {user.id}")
        return True
    return False


def _denial(decision: EntitlementDecision) -> EntitlementError:
    label = _RESOURCE_LABELS[decision.resource]
    if decision.reason == DecisionReason.quota_exceeded:
        message = (
            f"Daily limit reached: trial accounts are limited to {decision.daily_limit} {label} per day. "
            "Subscribe for unlimited access."
        )
    else:
        message = "Your trial has ended. Please subscribe to continue."
    return EntitlementError(
        message,
        limit_type=decision.resource.limit_type,
        daily_limit=decision.daily_limit,
        used_today=decision.used_today,
        reason=decision.reason.value,
    )


async def evaluate(
    db: AsyncIOMotorDatabase,
    user: UserAccount,
    resource: QuotaResource,
    now: Optional[datetime] = None,
) -> EntitlementDecision:
    """Lazy reset followed by the pure entitlement decision."""
    now = now or utcnow()
    await reset_if_new_day(db, user, now)
    return check_quota(user, resource, now)


async def consume(
    db: AsyncIOMotorDatabase,
    user: UserAccount,
    resource: QuotaResource,
    now: Optional[datetime] = None,
) -> EntitlementDecision:
    """
    Check entitlement and, for trial users, take one unit of today's quota.

    Raises:
        EntitlementError: when the user may not perform the action
    """
    now = now or utcnow()
    decision = await evaluate(db, user, resource, now)
    if not decision.allowed:
        logger.info(f"Entitlement denied for user {user.id}: {resource.value} ({decision.reason.value})")
        raise _denial(decision)

    if not decision.counts_against_quota:
        return decision

    field = f"usage.{resource.counter_field}"
    updated = await get_user_collection(db).find_one_and_update(
        {"_id": ObjectId(user.id), field: {"$lt": decision.daily_limit}},
        {"$inc": {field: 1}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # Another request took the last unit between the check and the update.
        exhausted = EntitlementDecision(
            False, DecisionReason.quota_exceeded, resource, decision.daily_limit, decision.daily_limit
        )
        raise _denial(exhausted)

    used = updated["usage"][resource.counter_field]
    setattr(user.usage, resource.counter_field, used)
    logger.info(f"User {user.id} used {used}/{decision.daily_limit} {resource.value} today")
    return EntitlementDecision(True, DecisionReason.trial, resource, used, decision.daily_limit)


async def release(db: AsyncIOMotorDatabase, user: UserAccount, decision: EntitlementDecision) -> None:
    """Give back a unit taken by ``consume`` when the gated action itself failed."""
    if not decision.counts_against_quota:
        return
    field = f"usage.{decision.resource.counter_field}"
    await get_user_collection(db).update_one(
        {"_id": ObjectId(user.id), field: {"$gt": 0}},
        {"$inc": {field: -1}},
    )


async def increment_case_count(db: AsyncIOMotorDatabase, user: UserAccount, now: Optional[datetime] = None) -> EntitlementDecision:
    return await consume(db, user, QuotaResource.case, now)


async def increment_note_count(db: AsyncIOMotorDatabase, user: UserAccount, now: Optional[datetime] = None) -> EntitlementDecision:
    return await consume(db, user, QuotaResource.note, now)


async def increment_book_download_count(db: AsyncIOMotorDatabase, user: UserAccount, now: Optional[datetime] = None) -> EntitlementDecision:
    return await consume(db, user, QuotaResource.book_download, now)


async def usage_summary(db: AsyncIOMotorDatabase, user: UserAccount, now: Optional[datetime] = None) -> List[UsageSummary]:
    now = now or utcnow()
    await reset_if_new_day(db, user, now)
    summaries = []
    for resource in QuotaResource:
        decision = check_quota(user, resource, now)
        summaries.append(
            UsageSummary(
                limit_type=resource.limit_type,
                used_today=decision.used_today,
                daily_limit=decision.daily_limit,
                allowed=decision.allowed,
            )
        )
    return summaries
