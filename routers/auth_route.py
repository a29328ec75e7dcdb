import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

# Local imports
from core.deps import get_current_account
from core.exceptions import AppError, AuthenticationError
from db.connection import get_db
from models.auth_schema import (
    AuthenticatedUserResponse,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    TokenValidationResponse,
    UserResponse,
)
from models.user_schema import ProfileCompletionRequest, UserAccount
from services import accounts
from services.entitlement import has_active_subscription
from utils.clock import utcnow
from utils.encryption import AuthenticatedUser, get_current_user
from utils.jwt_handler import ACCESS_TOKEN_EXPIRE_MINUTES, issue_token_pair, verify_token

router = APIRouter()
logger = logging.getLogger("AuthRouter")


def _session(account: UserAccount) -> AuthenticatedUserResponse:
    access_token, refresh_token = issue_token_pair(account.id, account.role.value)
    return AuthenticatedUserResponse(
        user=UserResponse.from_account(account, has_active_subscription(account, utcnow())),
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=AuthenticatedUserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(request: RegisterRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        account = await accounts.register_account(db, request)
        return _session(account)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in User Registration: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/login", response_model=AuthenticatedUserResponse)
async def login_user(request: LoginRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        account = await accounts.authenticate(db, request.email, request.password)
        return _session(account)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in Login: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/refresh", response_model=TokenResponse)
async def refresh_access_token(request: RefreshTokenRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        payload = verify_token(request.refresh_token)
        if payload is None:
            raise AuthenticationError("Invalid refresh token")

        # Check if it's actually a refresh token
        if payload.get("type") != "refresh":
            raise AuthenticationError("Invalid token type")

        user_id = payload.get("sub")
        if user_id is None:
            raise AuthenticationError("Invalid token payload")

        # Role may have changed since the refresh token was issued
        account = await accounts.load_account(db, user_id)
        new_access_token, new_refresh_token = issue_token_pair(account.id, account.role.value)

        return TokenResponse(
            access_token=new_access_token,
            refresh_token=new_refresh_token,
            token_type="bearer",
            expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )
    except (HTTPException, AuthenticationError):
        raise
    except AppError:
        raise AuthenticationError("Invalid refresh token")
    except Exception as e:
        logger.error(f"Error in refresh_access_token: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/validate", response_model=TokenValidationResponse)
async def validate_token(current_user: AuthenticatedUser = Depends(get_current_user)):
    exp_timestamp = current_user.payload.get("exp")
    expires_at = None
    if exp_timestamp:
        expires_at = datetime.fromtimestamp(exp_timestamp, tz=timezone.utc)

    return TokenValidationResponse(
        valid=True,
        user_id=current_user.user_id,
        role=current_user.role,
        expires_at=expires_at,
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(account: UserAccount = Depends(get_current_account)):
    return UserResponse.from_account(account, has_active_subscription(account, utcnow()))


@router.post("/complete-profile", response_model=UserResponse)
async def complete_profile(
    request: ProfileCompletionRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        account = await accounts.complete_profile(db, current_user.user_id, request)
        return UserResponse.from_account(account, has_active_subscription(account, utcnow()))
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in complete_profile: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/logout", response_model=MessageResponse)
async def logout_user():
    return {"message": "Logout successful"}
