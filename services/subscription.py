"""
Subscription lifecycle.

States: trial -> {active, expired}; active -> {expired, cancelled};
expired/cancelled -> active again on a new payment or admin override.

Every transition is a single-document update so a redelivered payment event
can be detected and ignored inside the same write that would apply it.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from core.config import get_settings
from core.exceptions import ConflictError, NotFoundError
from core.roles import UserRole
from db.collections import get_payment_collection, get_user_collection
from models.payment_schema import PaymentRecord, PaymentStatus
from models.user_schema import SubscriptionStatus
from utils.clock import utcnow
from utils.ids import parse_object_id

logger = logging.getLogger("SubscriptionService")


def trial_fields(now: datetime, trial_days: Optional[int] = None) -> Dict[str, Any]:
    """Subscription fields for a freshly registered account."""
    days = trial_days if trial_days is not None else get_settings().trial_days
    return {
        "subscription_status": SubscriptionStatus.trial.value,
        "is_subscribed": False,
        "is_paid": False,
        "trial_start_date": now,
        "trial_end_date": now + timedelta(days=days),
        "subscription_start_date": None,
        "subscription_end_date": None,
        "usage": {
            "cases_created": 0,
            "notes_created": 0,
            "books_downloaded": 0,
            "last_reset_date": now,
        },
        "processed_payment_events": [],
    }


async def activate_subscription(
    db: AsyncIOMotorDatabase,
    user_id: ObjectId,
    event_id: Optional[str] = None,
    now: Optional[datetime] = None,
    customer_id: Optional[str] = None,
) -> bool:
    """
    Start a paid window of ``SUBSCRIPTION_DAYS`` from now.

    Args:
        db: Database connection
        user_id: Owner of the subscription
        event_id: External event id; an id already applied to this user is ignored
        now: Reference time
        customer_id: Payment provider customer id to remember, if any

    Returns:
        True if the subscription was (re)activated, False for a duplicate event

    Raises:
        NotFoundError: if the user does not exist
    """
    now = now or utcnow()
    settings = get_settings()

    changes: Dict[str, Any] = {
        "is_paid": True,
        "is_subscribed": True,
        "subscription_status": SubscriptionStatus.active.value,
        "subscription_start_date": now,
        "subscription_end_date": now + timedelta(days=settings.subscription_days),
        "updated_at": now,
    }
    if customer_id:
        changes["stripe_customer_id"] = customer_id

    query: Dict[str, Any] = {"_id": user_id}
    update: Dict[str, Any] = {"$set": changes}
    if event_id:
        query["processed_payment_events"] = {"$ne": event_id}
        # Only the most recent PROCESSED_EVENTS_KEPT ids are remembered.
        update["$push"] = {
            "processed_payment_events": {"$each": [event_id], "$slice": -settings.processed_events_kept}
        }

    users = get_user_collection(db)
    result = await users.update_one(query, update)
    if result.matched_count:
        logger.info(f"Subscription activated for user {user_id} until {changes['subscription_end_date']}")
        return True

    if await users.count_documents({"_id": user_id}, limit=1) == 0:
        raise NotFoundError("User")

    logger.info(f"Ignoring already processed payment event {event_id} for user {user_id}")
    return False


async def cancel_subscription(db: AsyncIOMotorDatabase, user_id: ObjectId, now: Optional[datetime] = None) -> None:
    now = now or utcnow()
    result = await get_user_collection(db).update_one(
        {"_id": user_id, "subscription_status": SubscriptionStatus.active.value},
        {
            "$set": {
                "is_subscribed": False,
                "subscription_status": SubscriptionStatus.cancelled.value,
                "updated_at": now,
            }
        },
    )
    if not result.matched_count:
        raise ConflictError("No active subscription to cancel")
    logger.info(f"Subscription cancelled for user {user_id}")


async def approve_payment(
    db: AsyncIOMotorDatabase,
    payment_id: str,
    admin_id: str,
    now: Optional[datetime] = None,
) -> PaymentRecord:
    """Admin verification of a payment: activates the owner and marks the payment verified."""
    now = now or utcnow()
    payments = get_payment_collection(db)
    oid = parse_object_id(payment_id, "Payment")

    payment = await payments.find_one({"_id": oid})
    if payment is None:
        raise NotFoundError("Payment")
    if payment["status"] == PaymentStatus.failed.value:
        raise ConflictError("Payment was rejected and cannot be approved")

    if payment["status"] != PaymentStatus.verified.value:
        await activate_subscription(db, payment["user_id"], event_id=f"payment:{payment_id}", now=now)
        payment = await payments.find_one_and_update(
            {"_id": oid},
            {
                "$set": {
                    "status": PaymentStatus.verified.value,
                    "verified_by": ObjectId(admin_id),
                    "verified_at": now,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        logger.info(f"Payment {payment_id} verified by admin {admin_id}")

    return PaymentRecord.from_document(payment)


async def reject_payment(
    db: AsyncIOMotorDatabase,
    payment_id: str,
    admin_id: str,
    reason: str,
    now: Optional[datetime] = None,
) -> PaymentRecord:
    """Mark a payment failed. The user's subscription state is left untouched."""
    now = now or utcnow()
    payments = get_payment_collection(db)
    oid = parse_object_id(payment_id, "Payment")

    payment = await payments.find_one_and_update(
        {"_id": oid, "status": {"$in": [PaymentStatus.pending.value, PaymentStatus.completed.value]}},
        {
            "$set": {
                "status": PaymentStatus.failed.value,
                "failure_reason": reason,
                "verified_by": ObjectId(admin_id),
                "verified_at": now,
            }
        },
        return_document=ReturnDocument.AFTER,
    )
    if payment is None:
        if await payments.count_documents({"_id": oid}, limit=1) == 0:
            raise NotFoundError("Payment")
        raise ConflictError("Only pending or completed payments can be rejected")

    logger.info(f"Payment {payment_id} rejected by admin {admin_id}: {reason}")
    return PaymentRecord.from_document(payment)


async def run_expiry_sweep(db: AsyncIOMotorDatabase, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Expire lapsed trials and paid windows in two batch updates.

    A webhook activation racing with the sweep for the same user is resolved
    by whichever write lands last.
    """
    now = now or utcnow()
    users = get_user_collection(db)

    trials = await users.update_many(
        {
            "role": {"$ne": UserRole.admin.value},
            "subscription_status": SubscriptionStatus.trial.value,
            "trial_end_date": {"$lt": now},
            "is_subscribed": {"$ne": True},
        },
        {"$set": {"subscription_status": SubscriptionStatus.expired.value, "updated_at": now}},
    )
    subscriptions = await users.update_many(
        {
            "role": {"$ne": UserRole.admin.value},
            "is_subscribed": True,
            "subscription_end_date": {"$lt": now},
        },
        {
            "$set": {
                "is_subscribed": False,
                "subscription_status": SubscriptionStatus.expired.value,
                "updated_at": now,
            }
        },
    )

    summary = {"expired_trials": trials.modified_count, "expired_subscriptions": subscriptions.modified_count}
    logger.info(f"Expiry sweep finished: {summary}")
    return summary
