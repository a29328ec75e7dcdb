import logging

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.deps import get_current_account
from core.exceptions import AppError
from db.connection import get_db
from models.auth_schema import MessageResponse
from models.user_schema import SubscriptionStatusResponse, UserAccount
from services import usage
from services.entitlement import has_active_subscription, is_trial_active
from services.subscription import cancel_subscription
from utils.clock import utcnow

router = APIRouter()
logger = logging.getLogger("SubscriptionRouter")


@router.get("/status", response_model=SubscriptionStatusResponse)
async def subscription_status(
    account: UserAccount = Depends(get_current_account),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Subscription window, trial window and today's usage against the trial limits."""
    try:
        now = utcnow()
        summaries = await usage.usage_summary(db, account, now)
        return SubscriptionStatusResponse(
            subscription_status=account.subscription_status,
            is_subscribed=account.is_subscribed,
            is_paid=account.is_paid,
            has_active_subscription=has_active_subscription(account, now),
            is_trial_active=is_trial_active(account, now),
            trial_end_date=account.trial_end_date,
            subscription_end_date=account.subscription_end_date,
            usage=summaries,
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in subscription_status: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/cancel", response_model=MessageResponse)
async def cancel(
    account: UserAccount = Depends(get_current_account),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        await cancel_subscription(db, ObjectId(account.id))
        return {"message": "Subscription cancelled"}
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in cancel: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")
