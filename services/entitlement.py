"""
Entitlement decisions.

Pure functions over a ``UserAccount`` snapshot and a reference time. Nothing in
this module performs I/O; persistence of counters lives in ``services.usage``.

Rules:
    - admins are always entitled;
    - paid subscribers are unlimited while their window is open;
    - trial users get ``DAILY_TRIAL_QUOTA`` of each quota resource per UTC day;
    - everyone else is denied.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from core.config import get_settings
from models.user_schema import UserAccount
from utils.clock import same_utc_day


class QuotaResource(str, Enum):
    case = "case"
    note = "note"
    book_download = "book_download"

    @property
    def counter_field(self) -> str:
        return _COUNTER_FIELDS[self]

    @property
    def limit_type(self) -> str:
        return _LIMIT_TYPES[self]


_COUNTER_FIELDS = {
    QuotaResource.case: "cases_created",
    QuotaResource.note: "notes_created",
    QuotaResource.book_download: "books_downloaded",
}

_LIMIT_TYPES = {
    QuotaResource.case: "cases",
    QuotaResource.note: "notes",
    QuotaResource.book_download: "book_downloads",
}


class DecisionReason(str, Enum):
    admin = "admin"
    subscribed = "subscribed"
    trial = "trial"
    quota_exceeded = "quota_exceeded"
    subscription_required = "subscription_required"


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    reason: DecisionReason
    resource: QuotaResource
    used_today: int
    daily_limit: Optional[int]  # None: unlimited

    @property
    def counts_against_quota(self) -> bool:
        """Only trial usage is metered; admins and subscribers are never counted."""
        return self.allowed and self.reason == DecisionReason.trial


def needs_daily_reset(user: UserAccount, now: datetime) -> bool:
    last = user.usage.last_reset_date
    return last is None or (not same_utc_day(last, now) and last < now)


def used_today(user: UserAccount, resource: QuotaResource, now: datetime) -> int:
    if needs_daily_reset(user, now):
        return 0
    return getattr(user.usage, resource.counter_field)


def is_trial_active(user: UserAccount, now: datetime) -> bool:
    if user.trial_start_date is None or user.trial_end_date is None:
        return False
    return now <= user.trial_end_date


def is_paid_window_open(user: UserAccount, now: datetime) -> bool:
    return (
        user.is_subscribed
        and user.subscription_end_date is not None
        and now <= user.subscription_end_date
    )


def has_active_subscription(user: UserAccount, now: datetime) -> bool:
    if user.is_admin:
        return True
    if is_trial_active(user, now):
        return True
    return is_paid_window_open(user, now)


def check_quota(
    user: UserAccount,
    resource: QuotaResource,
    now: datetime,
    daily_limit: Optional[int] = None,
) -> EntitlementDecision:
    """Decide whether ``user`` may consume one unit of ``resource`` right now."""
    limit = daily_limit if daily_limit is not None else get_settings().daily_trial_quota
    used = used_today(user, resource, now)

    if user.is_admin:
        return EntitlementDecision(True, DecisionReason.admin, resource, used, None)

    # Paid users are unlimited only while the window is open, even before the sweep runs.
    if is_paid_window_open(user, now):
        return EntitlementDecision(True, DecisionReason.subscribed, resource, used, None)

    if is_trial_active(user, now):
        if used < limit:
            return EntitlementDecision(True, DecisionReason.trial, resource, used, limit)
        return EntitlementDecision(False, DecisionReason.quota_exceeded, resource, used, limit)

    return EntitlementDecision(False, DecisionReason.subscription_required, resource, used, limit)


def can_create_case(user: UserAccount, now: datetime) -> bool:
    return check_quota(user, QuotaResource.case, now).allowed


def can_create_note(user: UserAccount, now: datetime) -> bool:
    return check_quota(user, QuotaResource.note, now).allowed


def can_download_book(user: UserAccount, now: datetime) -> bool:
    return check_quota(user, QuotaResource.book_download, now).allowed
