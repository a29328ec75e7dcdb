import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.deps import require_roles
from core.exceptions import AppError
from core.roles import UserRole
from db.collections import get_user_collection
from db.connection import get_db
from models.auth_schema import UserResponse
from models.payment_schema import PaymentRecord, PaymentRejectionRequest, PaymentStatus
from models.user_schema import UserAccount
from services import payments, subscription
from services.accounts import load_account
from services.content import dashboard_stats
from services.entitlement import has_active_subscription
from utils.clock import utcnow
from utils.encryption import AuthenticatedUser
from utils.ids import parse_object_id

router = APIRouter()
logger = logging.getLogger("AdminRouter")

admin_only = require_roles(UserRole.admin)


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    _: AuthenticatedUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    now = utcnow()
    cursor = get_user_collection(db).find({}).sort("created_at", -1)
    users = []
    async for doc in cursor:
        account = UserAccount.from_document(doc)
        users.append(UserResponse.from_account(account, has_active_subscription(account, now)))
    return users


@router.patch("/users/{user_id}/mark-paid", response_model=UserResponse)
async def mark_user_paid(
    user_id: str,
    admin: AuthenticatedUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Manual override: start a paid window for the user."""
    try:
        await subscription.activate_subscription(db, parse_object_id(user_id, "User"))
        logger.info(f"User {user_id} marked paid by admin {admin.user_id}")
        account = await load_account(db, user_id)
        return UserResponse.from_account(account, has_active_subscription(account, utcnow()))
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in mark_user_paid: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get("/payments", response_model=List[PaymentRecord])
async def list_payments(
    status: Optional[PaymentStatus] = None,
    _: AuthenticatedUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await payments.list_payments(db, status=status)


@router.patch("/payments/{payment_id}/approve", response_model=PaymentRecord)
async def approve_payment(
    payment_id: str,
    admin: AuthenticatedUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        return await subscription.approve_payment(db, payment_id, admin.user_id)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in approve_payment: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.patch("/payments/{payment_id}/reject", response_model=PaymentRecord)
async def reject_payment(
    payment_id: str,
    request: PaymentRejectionRequest,
    admin: AuthenticatedUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        return await subscription.reject_payment(db, payment_id, admin.user_id, request.reason)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in reject_payment: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get("/dashboard-stats")
async def get_dashboard_stats(
    _: AuthenticatedUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await dashboard_stats(db)


@router.post("/expiry-sweep")
async def run_expiry_sweep(
    admin: AuthenticatedUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    logger.info(f"Expiry sweep triggered by admin {admin.user_id}")
    return await subscription.run_expiry_sweep(db)
