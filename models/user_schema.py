from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.roles import UserRole
from utils.clock import as_naive_utc


class SubscriptionStatus(str, Enum):
    trial = "trial"
    active = "active"
    expired = "expired"
    cancelled = "cancelled"


class UsageCounters(BaseModel):
    """Per-day usage of the quota-limited resources, embedded in the user document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    cases_created: int = 0
    notes_created: int = 0
    books_downloaded: int = 0
    last_reset_date: Optional[datetime] = None

    @field_validator("last_reset_date")
    @classmethod
    def _naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class UserAccount(BaseModel):
    """Subscription-relevant view of a ``users`` document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    email: str
    name: Optional[str] = None
    role: UserRole = UserRole.user

    subscription_status: SubscriptionStatus = SubscriptionStatus.trial
    is_subscribed: bool = False
    is_paid: bool = False
    trial_start_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    subscription_start_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None

    usage: UsageCounters = Field(default_factory=UsageCounters)

    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None

    onboarding_completed: bool = False
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    court_name: Optional[str] = None
    bar_council_number: Optional[str] = None

    created_at: Optional[datetime] = None

    @field_validator(
        "trial_start_date",
        "trial_end_date",
        "subscription_start_date",
        "subscription_end_date",
        "created_at",
    )
    @classmethod
    def _naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UserAccount":
        data = {k: v for k, v in doc.items() if k not in ("_id", "password")}
        data["id"] = str(doc["_id"])
        return cls.model_validate(data)


class ProfileCompletionRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    full_name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    province: str = Field(min_length=1)
    city: str = Field(min_length=1)
    court_name: str = Field(min_length=1)
    bar_council_number: Optional[str] = ""


class UsageSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    limit_type: str
    used_today: int
    daily_limit: Optional[int] = None  # None means unlimited
    allowed: bool


class SubscriptionStatusResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    subscription_status: SubscriptionStatus
    is_subscribed: bool
    is_paid: bool
    has_active_subscription: bool
    is_trial_active: bool
    trial_end_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    usage: list[UsageSummary]
