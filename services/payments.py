"""
Payment provider integration (Stripe) and payment records.

Stripe's SDK is synchronous; calls are pushed to the threadpool and bounded by
``EXTERNAL_TIMEOUT_SECONDS`` so a slow provider never pins a request.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import stripe
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.config import get_settings
from core.exceptions import ExternalServiceError, InputValidationError, NotFoundError, WebhookSignatureError
from db.collections import get_payment_collection
from models.payment_schema import (
    CheckoutSessionResponse,
    ManualPaymentRequest,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
)
from models.user_schema import UserAccount
from services.subscription import activate_subscription
from utils.clock import utcnow
from utils.ids import parse_object_id

logger = logging.getLogger("PaymentService")

ACTIVATING_EVENTS = {"checkout.session.completed", "payment_intent.succeeded"}


def _new_payment(user_id: str, amount: float, currency: str, method: PaymentMethod, **extra: Any) -> Dict[str, Any]:
    doc = {
        "user_id": ObjectId(user_id),
        "amount": amount,
        "currency": currency,
        "method": method.value,
        "status": PaymentStatus.pending.value,
        "external_id": None,
        "transaction_reference": None,
        "verified_by": None,
        "verified_at": None,
        "failure_reason": None,
        "created_at": utcnow(),
    }
    doc.update(extra)
    return doc


async def create_checkout_session(db: AsyncIOMotorDatabase, user: UserAccount) -> CheckoutSessionResponse:
    """Open a Stripe checkout session and record the pending card payment."""
    settings = get_settings()
    if not settings.stripe_secret_key:
        raise ExternalServiceError("stripe", "Stripe not configured")

    payments = get_payment_collection(db)
    doc = _new_payment(user.id, settings.stripe_price_cents / 100, settings.stripe_currency, PaymentMethod.card)
    inserted = await payments.insert_one(doc)
    payment_id = str(inserted.inserted_id)

    try:
        session = await asyncio.wait_for(
            asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=settings.stripe_secret_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": settings.stripe_currency,
                            "product_data": {"name": settings.stripe_product_name},
                            "unit_amount": settings.stripe_price_cents,
                        },
                        "quantity": 1,
                    }
                ],
                success_url=f"{settings.client_url}/auth/login?payment_status=success",
                cancel_url=f"{settings.client_url}/auth/login?payment_status=canceled",
                client_reference_id=user.id,
                metadata={"userId": user.id, "paymentId": payment_id},
                payment_intent_data={"metadata": {"userId": user.id, "paymentId": payment_id}},
            ),
            timeout=settings.external_timeout_seconds,
        )
    except (stripe.StripeError, asyncio.TimeoutError) as e:
        logger.error(f"Stripe checkout session creation failed for user {user.id}: {e}")
        await payments.update_one(
            {"_id": inserted.inserted_id},
            {"$set": {"status": PaymentStatus.failed.value, "failure_reason": "checkout_creation_failed"}},
        )
        raise ExternalServiceError("stripe", "Could not start checkout. Please try again.")

    await payments.update_one({"_id": inserted.inserted_id}, {"$set": {"external_id": session.id}})
    logger.info(f"Checkout session {session.id} created for user {user.id}")
    return CheckoutSessionResponse(url=session.url, payment_id=payment_id)


async def submit_manual_payment(db: AsyncIOMotorDatabase, user: UserAccount, request: ManualPaymentRequest) -> PaymentRecord:
    """Record an offline payment (bank transfer, mobile wallet) awaiting admin verification."""
    if request.method == PaymentMethod.card:
        raise InputValidationError("method", "Card payments must go through checkout")

    doc = _new_payment(
        user.id,
        request.amount,
        request.currency,
        request.method,
        transaction_reference=request.transaction_reference,
    )
    inserted = await get_payment_collection(db).insert_one(doc)
    doc["_id"] = inserted.inserted_id
    logger.info(f"Manual {request.method.value} payment submitted by user {user.id}")
    return PaymentRecord.from_document(doc)


def verify_webhook(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Verify the ``stripe-signature`` header against the raw body.

    Raises:
        WebhookSignatureError: on a missing or invalid signature or malformed payload
    """
    settings = get_settings()
    if not signature:
        raise WebhookSignatureError("Missing stripe-signature header")
    if not settings.stripe_webhook_secret:
        raise WebhookSignatureError("Webhook secret not configured")

    try:
        stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise WebhookSignatureError(f"Webhook Error: {e}")

    # Verified; handle the body as plain JSON rather than SDK objects.
    return json.loads(payload)


async def handle_webhook_event(db: AsyncIOMotorDatabase, event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply a verified provider event.

    Returns a small acknowledgement body; unknown event types are acknowledged
    without any state change so the provider stops redelivering them.
    """
    event_id = event["id"]
    event_type = event["type"]
    obj = event["data"]["object"]
    logger.info(f"Received webhook event {event_id} ({event_type})")

    if event_type not in ACTIVATING_EVENTS:
        return {"received": True, "applied": False}

    metadata = obj.get("metadata") or {}
    user_id = metadata.get("userId")
    if not user_id:
        logger.warning(f"Webhook event {event_id} carries no userId metadata")
        return {"received": True, "applied": False}

    # A checkout emits both a session and a payment-intent event; keying on the
    # payment record applies it once no matter which arrives first.
    payment_id = metadata.get("paymentId")
    try:
        applied = await activate_subscription(
            db,
            parse_object_id(user_id, "User"),
            event_id=f"payment:{payment_id}" if payment_id else event_id,
            customer_id=obj.get("customer"),
        )
    except NotFoundError:
        # Redelivery cannot fix an unknown user; acknowledge so the provider stops retrying.
        logger.warning(f"Webhook event {event_id} references unknown user {user_id}")
        return {"received": True, "applied": False}

    query: Dict[str, Any]
    if payment_id and ObjectId.is_valid(payment_id):
        query = {"_id": ObjectId(payment_id)}
    else:
        query = {"external_id": obj.get("id")}
    # A checkout that timed out on our side may still have been paid.
    await get_payment_collection(db).update_one(
        {**query, "status": {"$in": [PaymentStatus.pending.value, PaymentStatus.failed.value]}},
        {
            "$set": {"status": PaymentStatus.completed.value, "external_id": obj.get("id")},
            "$unset": {"failure_reason": ""},
        },
    )

    return {"received": True, "applied": applied}


async def list_payments(
    db: AsyncIOMotorDatabase,
    user_id: Optional[str] = None,
    status: Optional[PaymentStatus] = None,
) -> List[PaymentRecord]:
    query: Dict[str, Any] = {}
    if user_id:
        query["user_id"] = ObjectId(user_id)
    if status:
        query["status"] = status.value
    cursor = get_payment_collection(db).find(query).sort("created_at", -1)
    return [PaymentRecord.from_document(doc) async for doc in cursor]
