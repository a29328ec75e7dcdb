from datetime import timedelta

import pytest
from bson import ObjectId

from core.exceptions import EntitlementError
from core.roles import UserRole
from db.collections import get_user_collection
from services import usage
from services.entitlement import QuotaResource
from utils.clock import utcnow


async def stored_usage(db, user):
    doc = await get_user_collection(db).find_one({"_id": ObjectId(user.id)})
    return doc["usage"]


async def test_trial_user_gets_two_cases_per_day(db, make_user):
    user = await make_user()

    first = await usage.increment_case_count(db, user)
    second = await usage.increment_case_count(db, user)
    assert (first.used_today, second.used_today) == (1, 2)

    with pytest.raises(EntitlementError) as exc:
        await usage.increment_case_count(db, user)

    detail = exc.value.to_detail()
    assert detail["usedToday"] == 2
    assert detail["dailyLimit"] == 2
    assert detail["limitType"] == "cases"
    assert detail["reason"] == "quota_exceeded"
    assert (await stored_usage(db, user))["cases_created"] == 2


async def test_denial_leaves_other_counters_usable(db, make_user):
    user = await make_user()
    await usage.increment_case_count(db, user)
    await usage.increment_case_count(db, user)

    decision = await usage.increment_note_count(db, user)
    assert decision.allowed
    assert (await stored_usage(db, user))["notes_created"] == 1


async def test_conditional_increment_refuses_a_stale_snapshot(db, make_user):
    # Two requests loaded the user before either incremented.
    user = await make_user()
    stale = user.model_copy(deep=True)
    await usage.increment_case_count(db, user)
    await usage.increment_case_count(db, user)

    with pytest.raises(EntitlementError) as exc:
        await usage.consume(db, stale, QuotaResource.case)
    assert exc.value.used_today == 2
    assert (await stored_usage(db, user))["cases_created"] == 2


async def test_day_rollover_resets_counters(db, make_user):
    yesterday = utcnow() - timedelta(days=1)
    user = await make_user(usage={
        "cases_created": 2,
        "notes_created": 1,
        "books_downloaded": 2,
        "last_reset_date": yesterday,
    })

    decision = await usage.increment_case_count(db, user)

    assert decision.used_today == 1
    stored = await stored_usage(db, user)
    assert stored["cases_created"] == 1
    assert stored["notes_created"] == 0
    assert stored["books_downloaded"] == 0
    assert stored["last_reset_date"].date() == utcnow().date()


async def test_reset_happens_once_per_day(db, make_user):
    user = await make_user(usage={
        "cases_created": 2, "notes_created": 0, "books_downloaded": 0,
        "last_reset_date": utcnow() - timedelta(days=2),
    })
    now = utcnow()

    assert await usage.reset_if_new_day(db, user, now) is True
    assert await usage.reset_if_new_day(db, user, now) is False


async def test_admins_and_subscribers_are_never_counted(db, make_user):
    admin = await make_user(role=UserRole.admin)
    subscriber = await make_user(is_subscribed=True, subscription_end_date=utcnow() + timedelta(days=30))

    for _ in range(5):
        await usage.increment_book_download_count(db, admin)
        await usage.increment_book_download_count(db, subscriber)

    assert (await stored_usage(db, admin))["books_downloaded"] == 0
    assert (await stored_usage(db, subscriber))["books_downloaded"] == 0


async def test_expired_trial_is_denied_with_subscription_required(db, make_user, expired_trial):
    user = await make_user(**expired_trial)

    with pytest.raises(EntitlementError) as exc:
        await usage.increment_note_count(db, user)

    assert exc.value.reason == "subscription_required"
    assert (await stored_usage(db, user))["notes_created"] == 0


async def test_release_gives_back_a_unit(db, make_user):
    user = await make_user()
    decision = await usage.increment_case_count(db, user)

    await usage.release(db, user, decision)

    assert (await stored_usage(db, user))["cases_created"] == 0


async def test_usage_summary_reports_each_resource(db, make_user):
    user = await make_user()
    await usage.increment_book_download_count(db, user)

    summary = {s.limit_type: s for s in await usage.usage_summary(db, user)}

    assert summary["book_downloads"].used_today == 1
    assert summary["cases"].used_today == 0
    assert all(s.daily_limit == 2 for s in summary.values())
