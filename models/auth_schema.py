from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from core.roles import UserRole
from models.user_schema import SubscriptionStatus, UserAccount


# Request Schemas
class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


# Response Schemas
class MessageResponse(BaseModel):
    message: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until token expires


class UserResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    email: str
    name: Optional[str] = None
    role: UserRole
    is_paid: bool
    is_subscribed: bool
    subscription_status: SubscriptionStatus
    has_active_subscription: bool
    trial_end_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    onboarding_completed: bool = False
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    court_name: Optional[str] = None
    bar_council_number: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_account(cls, account: UserAccount, has_active_subscription: bool) -> "UserResponse":
        return cls(
            **account.model_dump(
                include={
                    "id", "email", "name", "role", "is_paid", "is_subscribed", "subscription_status",
                    "trial_end_date", "subscription_end_date", "onboarding_completed", "full_name",
                    "phone_number", "province", "city", "court_name", "bar_council_number", "created_at",
                }
            ),
            has_active_subscription=has_active_subscription,
        )


class AuthenticatedUserResponse(BaseModel):
    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenValidationResponse(BaseModel):
    valid: bool
    user_id: Optional[str] = None
    role: Optional[UserRole] = None
    expires_at: Optional[datetime] = None
