import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.deps import get_current_account
from core.exceptions import AppError
from db.connection import get_db
from models.payment_schema import CheckoutSessionResponse, ManualPaymentRequest, PaymentRecord
from models.user_schema import UserAccount
from services import payments

router = APIRouter()
logger = logging.getLogger("PaymentRouter")


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    account: UserAccount = Depends(get_current_account),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        return await payments.create_checkout_session(db, account)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in create_checkout_session: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/manual", response_model=PaymentRecord, status_code=status.HTTP_201_CREATED)
async def submit_manual_payment(
    request: ManualPaymentRequest,
    account: UserAccount = Depends(get_current_account),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        return await payments.submit_manual_payment(db, account, request)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in submit_manual_payment: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get("/history", response_model=List[PaymentRecord])
async def payment_history(
    account: UserAccount = Depends(get_current_account),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await payments.list_payments(db, user_id=account.id)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="stripe-signature"),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Provider callback. The signature is checked against the raw body before anything is written."""
    payload = await request.body()
    event = payments.verify_webhook(payload, stripe_signature)
    try:
        return await payments.handle_webhook_event(db, event)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error handling webhook event: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")
