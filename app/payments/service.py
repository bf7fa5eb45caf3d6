"""
Razorpay payment adapter
Orders are created for the sum of the selected courses; a verified
checkout signature is the only trigger for enrollment.
"""

import hashlib
import hmac
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import BackgroundTasks
from fastapi.concurrency import run_in_threadpool
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.catalog.durations import round_half_up
from app.core.errors import (
    ConflictError, ExternalServiceFailure, IntegrityFailure, NotFoundError, ValidationFailed,
)
from app.enrollment.service import enroll_students
from app.notifications import templates
from app.notifications.mailer import queue_email

logger = logging.getLogger(__name__)


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """HMAC-SHA256 of "<order_id>|<payment_id>" keyed with the merchant secret"""
    message = f"{order_id}|{payment_id}"
    generated_signature = hmac.new(
        secret.encode(),
        message.encode(),
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(generated_signature, signature)


# ==================== ORDERS ====================

async def create_order(
    db: AsyncIOMotorDatabase,
    client,
    course_ids: Optional[List[str]],
    user_id: str,
    currency: str = "INR",
) -> dict:
    """
    Create a gateway order covering every course in the cart

    Raises:
        400: Empty cart
        404: Unknown course
        409: Caller already enrolled in one of the courses
        502: Gateway unavailable or rejected the order
    """
    if not course_ids:
        raise ValidationFailed("Please provide Course Id")

    total = 0.0
    for course_id in course_ids:
        course = await db.courses.find_one({"course_id": course_id})
        if not course:
            raise NotFoundError("Could not find the course")

        if user_id in [str(s) for s in course.get("students_enrolled", [])]:
            raise ConflictError("Student is already Enrolled")

        total += float(course.get("price", 0))

    if client is None:
        raise ExternalServiceFailure("Payment gateway is not configured.")

    order_data = {
        "amount": round_half_up(total * 100),
        "currency": currency,
        "receipt": uuid.uuid4().hex,
        "notes": {"user_id": user_id},
    }

    try:
        order = await run_in_threadpool(client.order.create, data=order_data)
    except Exception:
        logger.exception("Payment gateway order creation failed")
        raise ExternalServiceFailure("Could not initiate order.")

    await db.payments.insert_one({
        "razorpay_order_id": order["id"],
        "user_id": user_id,
        "course_ids": list(course_ids),
        "amount": order_data["amount"],
        "currency": currency,
        "status": "created",
        "created_at": datetime.utcnow(),
    })

    logger.info("Created order %s for %s (%s %s)", order["id"], user_id, order_data["amount"], currency)
    return order


async def verify_and_capture(
    db: AsyncIOMotorDatabase,
    order_id: Optional[str],
    payment_id: Optional[str],
    signature: Optional[str],
    course_ids: Optional[List[str]],
    user_id: str,
    secret: str,
    mailer,
    background_tasks: BackgroundTasks,
) -> List[str]:
    """
    Check the checkout signature, then enroll

    Nothing is written unless the signature matches.
    """
    if not order_id or not payment_id or not signature or not course_ids or not user_id:
        raise ValidationFailed("Payment verification failed")

    if not verify_signature(order_id, payment_id, signature, secret or ""):
        logger.warning("Signature mismatch for order %s", order_id)
        raise IntegrityFailure("Invalid signature sent!")

    await db.payments.update_one(
        {"razorpay_order_id": order_id},
        {"$set": {
            "status": "captured",
            "razorpay_payment_id": payment_id,
            "captured_at": datetime.utcnow(),
        }}
    )

    return await enroll_students(db, course_ids, user_id, mailer, background_tasks)


async def send_payment_success_email(
    db: AsyncIOMotorDatabase,
    user_id: str,
    order_id: Optional[str],
    payment_id: Optional[str],
    amount,
    mailer,
    background_tasks: BackgroundTasks,
):
    if not order_id or not payment_id or amount in (None, ""):
        raise ValidationFailed("Please provide all the details")

    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise NotFoundError("User not found")

    try:
        rupees = float(amount) / 100
    except (TypeError, ValueError):
        raise ValidationFailed("Amount must be a number.")

    name = f"{user.get('first_name', '')} {user.get('last_name', '')}".strip()
    subject, html = templates.payment_success(name, rupees, order_id, payment_id)
    queue_email(background_tasks, mailer, user["email"], subject, html)
