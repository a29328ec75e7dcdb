import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta

from bson import ObjectId

from db.collections import get_payment_collection
from utils.clock import utcnow

WEBHOOK_SECRET = "whsec_test_secret"


def signed(payload: str, secret: str = WEBHOOK_SECRET) -> dict:
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return {"stripe-signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def checkout_event(user_id: str, event_id: str = "evt_checkout_1", payment_id: str = None) -> str:
    metadata = {"userId": user_id}
    if payment_id:
        metadata["paymentId"] = payment_id
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_test_123", "object": "checkout.session", "metadata": metadata}},
    })


def parse_date(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", ""))


def test_checkout_completed_activates_subscription(client, register):
    headers, user = register()
    payload = checkout_event(user["id"])

    response = client.post("/api/pay/webhook", content=payload, headers=signed(payload))

    assert response.status_code == 200
    assert response.json() == {"received": True, "applied": True}

    me = client.get("/api/auth/me", headers=headers).json()
    assert me["isSubscribed"] is True
    assert me["hasActiveSubscription"] is True
    end = parse_date(me["subscriptionEndDate"])
    assert abs(end - (utcnow() + timedelta(days=30))) < timedelta(minutes=1)


def test_bad_signature_is_rejected_without_changes(client, register):
    headers, user = register()
    payload = checkout_event(user["id"])

    response = client.post("/api/pay/webhook", content=payload, headers=signed(payload, secret="whsec_wrong"))

    assert response.status_code == 400
    me = client.get("/api/auth/me", headers=headers).json()
    assert me["isSubscribed"] is False
    assert me["subscriptionStatus"] == "trial"


def test_missing_signature_is_rejected(client, register):
    _, user = register()
    response = client.post("/api/pay/webhook", content=checkout_event(user["id"]))
    assert response.status_code == 400


def test_redelivered_event_does_not_extend(client, register):
    headers, user = register()
    payload = checkout_event(user["id"], event_id="evt_redelivered")

    client.post("/api/pay/webhook", content=payload, headers=signed(payload))
    first_end = client.get("/api/auth/me", headers=headers).json()["subscriptionEndDate"]

    response = client.post("/api/pay/webhook", content=payload, headers=signed(payload))

    assert response.json()["applied"] is False
    assert client.get("/api/auth/me", headers=headers).json()["subscriptionEndDate"] == first_end


def test_session_and_intent_events_for_one_payment_apply_once(client, register):
    _, user = register()
    payment_id = str(ObjectId())
    session = checkout_event(user["id"], event_id="evt_session", payment_id=payment_id)
    intent = json.dumps({
        "id": "evt_intent",
        "object": "event",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_test_1", "object": "payment_intent",
                            "metadata": {"userId": user["id"], "paymentId": payment_id}}},
    })

    first = client.post("/api/pay/webhook", content=session, headers=signed(session))
    second = client.post("/api/pay/webhook", content=intent, headers=signed(intent))

    assert first.json()["applied"] is True
    assert second.json()["applied"] is False


def test_pending_payment_is_marked_completed(client, register, run_sync):
    _, user = register()
    payments = get_payment_collection(client.db)
    inserted = run_sync(payments.insert_one({
        "user_id": ObjectId(user["id"]),
        "amount": 15.0,
        "currency": "usd",
        "method": "card",
        "status": "pending",
        "external_id": "cs_test_123",
        "created_at": utcnow(),
    }))
    payload = checkout_event(user["id"], payment_id=str(inserted.inserted_id))

    client.post("/api/pay/webhook", content=payload, headers=signed(payload))

    doc = run_sync(payments.find_one({"_id": inserted.inserted_id}))
    assert doc["status"] == "completed"


def test_payment_failed_by_checkout_timeout_completes_when_paid(client, register, run_sync):
    headers, user = register()
    payments = get_payment_collection(client.db)
    inserted = run_sync(payments.insert_one({
        "user_id": ObjectId(user["id"]),
        "amount": 2.0,
        "currency": "usd",
        "method": "card",
        "status": "failed",
        "failure_reason": "checkout_creation_failed",
        "created_at": utcnow(),
    }))
    payload = checkout_event(user["id"], event_id="evt_late", payment_id=str(inserted.inserted_id))

    response = client.post("/api/pay/webhook", content=payload, headers=signed(payload))

    assert response.json()["applied"] is True
    doc = run_sync(payments.find_one({"_id": inserted.inserted_id}))
    assert doc["status"] == "completed"
    assert "failure_reason" not in doc
    assert client.get("/api/auth/me", headers=headers).json()["isSubscribed"] is True


def test_unrelated_event_is_acknowledged(client, register):
    payload = json.dumps({
        "id": "evt_other",
        "object": "event",
        "type": "customer.created",
        "data": {"object": {"id": "cus_1", "object": "customer"}},
    })

    response = client.post("/api/pay/webhook", content=payload, headers=signed(payload))

    assert response.status_code == 200
    assert response.json() == {"received": True, "applied": False}


def test_unknown_user_is_acknowledged_without_writes(client):
    payload = checkout_event(str(ObjectId()), event_id="evt_ghost")

    response = client.post("/api/pay/webhook", content=payload, headers=signed(payload))

    assert response.status_code == 200
    assert response.json()["applied"] is False


def test_manual_payment_then_admin_approval(client, register, admin_headers):
    headers, _ = register()

    submitted = client.post(
        "/api/pay/manual",
        json={"method": "easypaisa", "amount": 1500, "transactionReference": "EP-12345"},
        headers=headers,
    )
    assert submitted.status_code == 201, submitted.text
    payment_id = submitted.json()["id"]

    approved = client.patch(f"/api/admin/payments/{payment_id}/approve", headers=admin_headers)

    assert approved.status_code == 200, approved.text
    assert approved.json()["status"] == "verified"
    assert client.get("/api/auth/me", headers=headers).json()["isSubscribed"] is True


def test_admin_routes_reject_plain_users(client, register):
    headers, _ = register()
    assert client.get("/api/admin/payments", headers=headers).status_code == 403
