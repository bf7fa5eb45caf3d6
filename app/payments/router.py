import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.auth.permissions import UserContext, require_student
from app.core.config import Settings
from app.core.dependencies import get_db, get_mailer, get_payment_client, get_settings
from app.payments import service

router = APIRouter(tags=["Payment"])
logger = logging.getLogger(__name__)


# ==================== PYDANTIC MODELS ====================

class CapturePaymentRequest(BaseModel):
    courses: Optional[List[str]] = None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    courses: Optional[List[str]] = None


class PaymentSuccessEmailRequest(BaseModel):
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    amount: Optional[float] = None


# ==================== API ENDPOINTS ====================

@router.post("/capturePayment")
async def capture_payment(
    payload: CapturePaymentRequest,
    user: UserContext = Depends(require_student),
    db: AsyncIOMotorDatabase = Depends(get_db),
    client=Depends(get_payment_client),
    settings: Settings = Depends(get_settings),
):
    """Create a gateway order for the selected courses"""
    try:
        order = await service.create_order(db, client, payload.courses, user.user_id, settings.payment_currency)
        return {
            "success": True,
            "message": "Order created successfully",
            "data": order,
            "key_id": settings.razorpay_key_id,
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("capturePayment failed")
        raise HTTPException(status_code=500, detail="Could not initiate order.")


@router.post("/verifyPayment")
async def verify_payment(
    payload: VerifyPaymentRequest,
    background_tasks: BackgroundTasks,
    user: UserContext = Depends(require_student),
    db: AsyncIOMotorDatabase = Depends(get_db),
    mailer=Depends(get_mailer),
    settings: Settings = Depends(get_settings),
):
    """Verify the checkout signature and enroll the student"""
    try:
        enrolled = await service.verify_and_capture(
            db,
            payload.razorpay_order_id,
            payload.razorpay_payment_id,
            payload.razorpay_signature,
            payload.courses,
            user.user_id,
            settings.razorpay_key_secret,
            mailer,
            background_tasks,
        )
        return {"success": True, "message": "Payment Verified", "data": {"enrolled": enrolled}}
    except HTTPException:
        raise
    except Exception:
        logger.exception("verifyPayment failed")
        raise HTTPException(status_code=500, detail="Payment verification failed")


@router.post("/sendPaymentSuccessEmail")
async def payment_success_email(
    payload: PaymentSuccessEmailRequest,
    background_tasks: BackgroundTasks,
    user: UserContext = Depends(require_student),
    db: AsyncIOMotorDatabase = Depends(get_db),
    mailer=Depends(get_mailer),
):
    try:
        await service.send_payment_success_email(
            db, user.user_id, payload.order_id, payload.payment_id, payload.amount, mailer, background_tasks
        )
        return {"success": True, "message": "Payment success email queued"}
    except HTTPException:
        raise
    except Exception:
        logger.exception("sendPaymentSuccessEmail failed")
        raise HTTPException(status_code=500, detail="Could not send email")
