from datetime import timedelta

import pytest
from bson import ObjectId

from core.config import get_settings
from core.exceptions import ConflictError, NotFoundError
from core.roles import UserRole
from db.collections import get_payment_collection, get_user_collection
from models.payment_schema import PaymentStatus
from models.user_schema import SubscriptionStatus
from services import subscription
from utils.clock import utcnow

ADMIN_ID = str(ObjectId())


def now_whole_second():
    # Mongo keeps millisecond precision; compare against values it can round-trip.
    return utcnow().replace(microsecond=0)


async def load(db, user):
    return await get_user_collection(db).find_one({"_id": ObjectId(user.id)})


async def insert_payment(db, user, status=PaymentStatus.pending):
    result = await get_payment_collection(db).insert_one({
        "user_id": ObjectId(user.id),
        "amount": 1500.0,
        "currency": "PKR",
        "method": "easypaisa",
        "status": status.value,
        "created_at": utcnow(),
    })
    return str(result.inserted_id)


def test_trial_fields_use_configured_length():
    now = utcnow()
    fields = subscription.trial_fields(now, trial_days=15)

    assert fields["subscription_status"] == SubscriptionStatus.trial.value
    assert fields["trial_end_date"] - fields["trial_start_date"] == timedelta(days=15)
    assert fields["usage"]["cases_created"] == 0


class TestActivation:
    async def test_sets_paid_window(self, db, make_user):
        user = await make_user()
        now = now_whole_second()

        assert await subscription.activate_subscription(db, ObjectId(user.id), event_id="evt_1", now=now)

        doc = await load(db, user)
        assert doc["is_subscribed"] is True
        assert doc["is_paid"] is True
        assert doc["subscription_status"] == SubscriptionStatus.active.value
        assert doc["subscription_end_date"] == now + timedelta(days=30)

    async def test_same_event_twice_does_not_extend(self, db, make_user):
        user = await make_user()
        first = now_whole_second()

        await subscription.activate_subscription(db, ObjectId(user.id), event_id="evt_dup", now=first)
        applied = await subscription.activate_subscription(
            db, ObjectId(user.id), event_id="evt_dup", now=first + timedelta(days=3)
        )

        doc = await load(db, user)
        assert applied is False
        assert doc["subscription_end_date"] == first + timedelta(days=30)
        assert doc["processed_payment_events"] == ["evt_dup"]

    async def test_new_event_starts_a_new_window(self, db, make_user):
        user = await make_user()
        first = now_whole_second()
        later = first + timedelta(days=3)

        await subscription.activate_subscription(db, ObjectId(user.id), event_id="evt_a", now=first)
        await subscription.activate_subscription(db, ObjectId(user.id), event_id="evt_b", now=later)

        assert (await load(db, user))["subscription_end_date"] == later + timedelta(days=30)

    async def test_processed_event_ids_are_capped(self, db, make_user, monkeypatch):
        monkeypatch.setattr(get_settings(), "processed_events_kept", 2)
        user = await make_user()

        for event_id in ("evt_1", "evt_2", "evt_3"):
            await subscription.activate_subscription(db, ObjectId(user.id), event_id=event_id)

        assert (await load(db, user))["processed_payment_events"] == ["evt_2", "evt_3"]

    async def test_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            await subscription.activate_subscription(db, ObjectId(), event_id="evt_x")


class TestAdminApproval:
    async def test_approve_activates_owner_and_verifies_payment(self, db, make_user):
        user = await make_user()
        payment_id = await insert_payment(db, user)

        record = await subscription.approve_payment(db, payment_id, ADMIN_ID)

        assert record.status == PaymentStatus.verified
        assert record.verified_by == ADMIN_ID
        assert record.verified_at is not None
        assert (await load(db, user))["is_subscribed"] is True

    async def test_approving_twice_does_not_extend(self, db, make_user):
        user = await make_user()
        payment_id = await insert_payment(db, user)

        await subscription.approve_payment(db, payment_id, ADMIN_ID)
        end = (await load(db, user))["subscription_end_date"]
        await subscription.approve_payment(db, payment_id, ADMIN_ID)

        assert (await load(db, user))["subscription_end_date"] == end

    async def test_reject_leaves_user_untouched(self, db, make_user):
        user = await make_user()
        payment_id = await insert_payment(db, user)
        before = await load(db, user)

        record = await subscription.reject_payment(db, payment_id, ADMIN_ID, "Reference not found")

        assert record.status == PaymentStatus.failed
        assert record.failure_reason == "Reference not found"
        assert await load(db, user) == before

    async def test_rejected_payment_cannot_be_approved(self, db, make_user):
        user = await make_user()
        payment_id = await insert_payment(db, user, status=PaymentStatus.failed)

        with pytest.raises(ConflictError):
            await subscription.approve_payment(db, payment_id, ADMIN_ID)

    async def test_verified_payment_cannot_be_rejected(self, db, make_user):
        user = await make_user()
        payment_id = await insert_payment(db, user, status=PaymentStatus.verified)

        with pytest.raises(ConflictError):
            await subscription.reject_payment(db, payment_id, ADMIN_ID, "late")

    async def test_missing_payment(self, db):
        with pytest.raises(NotFoundError):
            await subscription.approve_payment(db, str(ObjectId()), ADMIN_ID)


class TestCancel:
    async def test_cancel_active(self, db, make_user):
        user = await make_user()
        await subscription.activate_subscription(db, ObjectId(user.id))

        await subscription.cancel_subscription(db, ObjectId(user.id))

        doc = await load(db, user)
        assert doc["subscription_status"] == SubscriptionStatus.cancelled.value
        assert doc["is_subscribed"] is False

    async def test_cancel_without_subscription(self, db, make_user):
        user = await make_user()
        with pytest.raises(ConflictError):
            await subscription.cancel_subscription(db, ObjectId(user.id))


class TestExpirySweep:
    async def test_expires_lapsed_trials_and_subscriptions(self, db, make_user, expired_trial):
        now = utcnow()
        lapsed_trial = await make_user(**expired_trial)
        live_trial = await make_user()
        lapsed_paid = await make_user(
            **expired_trial,
            subscription_status=SubscriptionStatus.active.value,
            is_subscribed=True,
            subscription_end_date=now - timedelta(minutes=1),
        )
        live_paid = await make_user(
            subscription_status=SubscriptionStatus.active.value,
            is_subscribed=True,
            subscription_end_date=now + timedelta(days=10),
        )
        admin = await make_user(role=UserRole.admin, **expired_trial)

        summary = await subscription.run_expiry_sweep(db, now)

        assert summary == {"expired_trials": 1, "expired_subscriptions": 1}
        assert (await load(db, lapsed_trial))["subscription_status"] == SubscriptionStatus.expired.value
        assert (await load(db, live_trial))["subscription_status"] == SubscriptionStatus.trial.value
        paid_doc = await load(db, lapsed_paid)
        assert paid_doc["subscription_status"] == SubscriptionStatus.expired.value
        assert paid_doc["is_subscribed"] is False
        assert (await load(db, live_paid))["is_subscribed"] is True
        assert (await load(db, admin))["subscription_status"] == SubscriptionStatus.trial.value

    async def test_sweep_is_repeatable(self, db, make_user, expired_trial):
        await make_user(**expired_trial)
        now = utcnow()

        await subscription.run_expiry_sweep(db, now)
        assert await subscription.run_expiry_sweep(db, now) == {"expired_trials": 0, "expired_subscriptions": 0}
