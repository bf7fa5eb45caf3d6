import logging
import secrets
import string
import uuid
from datetime import datetime, timedelta
from typing import Optional, Tuple

import bcrypt
from fastapi import BackgroundTasks
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.auth.models import ChangePasswordRequest, SignUpRequest
from app.auth.permissions import UserContext
from app.auth.tokens import issue_token
from app.core.database import generate_id, public_user
from app.core.errors import ConflictError, NotFoundError, Unauthorized, ValidationFailed
from app.notifications import templates
from app.notifications.mailer import queue_email

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
OTP_TTL = timedelta(minutes=5)
RESET_TOKEN_TTL = timedelta(minutes=5)
BCRYPT_ROUNDS = 10


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not password or not hashed:
        return False
    return bcrypt.checkpw(password.encode(), hashed.encode())


def generate_otp() -> str:
    return "".join(secrets.choice(string.digits) for _ in range(OTP_LENGTH))


def avatar_url(first_name: str, last_name: str) -> str:
    initials = f"{first_name.strip()[:1]}{last_name.strip()[:1]}"
    return f"https://api.dicebear.com/5.x/initials/svg?seed={initials}"


# ==================== OTP ====================

async def send_otp(
    db: AsyncIOMotorDatabase,
    email: Optional[str],
    mailer,
    background_tasks: BackgroundTasks,
) -> dict:
    """Issue a signup verification code; regenerated while it collides with a live one"""
    if not email:
        raise ValidationFailed("Email is required.")

    if await db.users.find_one({"email": email}):
        raise ConflictError("An account with this email already exists. Please login instead.")

    otp = generate_otp()
    while await db.otps.find_one({"otp": otp}):
        otp = generate_otp()

    await db.otps.insert_one({
        "email": email,
        "otp": otp,
        "created_at": datetime.utcnow(),
    })

    subject, html = templates.otp_verification(otp)
    queue_email(background_tasks, mailer, email, subject, html)

    return {"email": email}


# ==================== SIGNUP / LOGIN ====================

async def sign_up(db: AsyncIOMotorDatabase, data: SignUpRequest) -> dict:
    required = [data.first_name, data.last_name, data.email, data.password, data.confirm_password, data.otp]
    if not all(required):
        raise ValidationFailed("All fields are required. Please fill in all the information.")

    if data.password != data.confirm_password:
        raise ValidationFailed("Passwords do not match. Please ensure both passwords are identical.")

    if await db.users.find_one({"email": data.email}):
        raise ConflictError("An account with this email already exists. Please login instead.")

    recent = await db.otps.find({"email": data.email}).sort("created_at", -1).limit(1).to_list(length=1)
    if not recent:
        raise ValidationFailed("No OTP found for this email. Please request a new OTP.")

    latest = recent[0]
    # TTL cleanup is lazy on the server side
    if latest["created_at"] < datetime.utcnow() - OTP_TTL:
        raise ValidationFailed("OTP has expired. Please request a new OTP.")
    if str(latest["otp"]) != str(data.otp):
        raise ValidationFailed("Invalid OTP. Please enter the correct verification code.")

    profile_id = generate_id("PRF")
    await db.profiles.insert_one({
        "profile_id": profile_id,
        "gender": None,
        "date_of_birth": None,
        "about": None,
        "contact_number": data.contact_number,
    })

    user = {
        "user_id": generate_id("USR"),
        "first_name": data.first_name,
        "last_name": data.last_name,
        "email": data.email,
        "password": hash_password(data.password),
        "account_type": data.account_type.value,
        "contact_number": data.contact_number,
        "profile_id": profile_id,
        "courses": [],
        "course_progress": [],
        "image": avatar_url(data.first_name, data.last_name),
        "created_at": datetime.utcnow(),
    }

    try:
        await db.users.insert_one(user)
    except DuplicateKeyError:
        await db.profiles.delete_one({"profile_id": profile_id})
        raise ConflictError("An account with this email already exists. Please login instead.")

    # Codes are single use
    await db.otps.delete_many({"email": data.email})

    logger.info("Registered %s account %s", user["account_type"], user["user_id"])
    return public_user(user)


async def login(
    db: AsyncIOMotorDatabase,
    email: Optional[str],
    password: Optional[str],
    secret: str,
    expires_days: int = 30,
) -> Tuple[str, dict]:
    if not email or not password:
        raise ValidationFailed("Please provide both email and password to login.")

    user = await db.users.find_one({"email": email})
    if not user:
        raise NotFoundError("No account found with this email. Please check your email or sign up.")

    if not verify_password(password, user.get("password")):
        raise Unauthorized("Password is incorrect")

    token = issue_token(user, secret, expires_days)
    return token, public_user(user)


# ==================== PASSWORDS ====================

async def change_password(
    db: AsyncIOMotorDatabase,
    current: UserContext,
    data: ChangePasswordRequest,
    mailer,
    background_tasks: BackgroundTasks,
):
    if not data.old_password or not data.new_password or not data.confirm_new_password:
        raise ValidationFailed("Please provide old password, new password, and confirm new password.")

    if data.new_password != data.confirm_new_password:
        raise ValidationFailed("New passwords do not match. Please ensure both new passwords are identical.")

    user = await db.users.find_one({"user_id": current.user_id})
    if not user:
        raise NotFoundError("User account not found. Please login again.")

    if not verify_password(data.old_password, user.get("password")):
        raise ValidationFailed("Current password is incorrect. Please enter your current password correctly.")

    await db.users.update_one(
        {"user_id": current.user_id},
        {"$set": {"password": hash_password(data.new_password), "updated_at": datetime.utcnow()}}
    )

    subject, html = templates.password_updated(user["email"], user.get("first_name", ""))
    queue_email(background_tasks, mailer, user["email"], subject, html)


async def reset_password_token(
    db: AsyncIOMotorDatabase,
    email: Optional[str],
    frontend_url: str,
    mailer,
    background_tasks: BackgroundTasks,
):
    if not email:
        raise ValidationFailed("Email is required.")

    user = await db.users.find_one({"email": email})
    if not user:
        raise NotFoundError("No account found with this email address. Please check your email or sign up.")

    token = str(uuid.uuid4())
    await db.users.update_one(
        {"email": email},
        {"$set": {
            "reset_token": token,
            "reset_password_expires": datetime.utcnow() + RESET_TOKEN_TTL,
        }}
    )

    url = f"{frontend_url.rstrip('/')}/update-password/{token}"
    subject, html = templates.password_reset(email, user.get("first_name", ""), url)
    queue_email(background_tasks, mailer, email, subject, html)


async def reset_password(
    db: AsyncIOMotorDatabase,
    token: Optional[str],
    password: Optional[str],
    confirm_password: Optional[str],
    mailer,
    background_tasks: BackgroundTasks,
):
    if not token or not password:
        raise ValidationFailed("Reset token and new password are required.")

    if password != confirm_password:
        raise ValidationFailed("Passwords do not match. Please ensure both passwords are identical.")

    user = await db.users.find_one({"reset_token": token})
    if not user:
        raise ValidationFailed("Invalid or expired reset token. Please request a new password reset.")

    expires = user.get("reset_password_expires")
    if not expires or expires < datetime.utcnow():
        raise ValidationFailed("Password reset link has expired. Please request a new password reset.")

    await db.users.update_one(
        {"user_id": user["user_id"]},
        {
            "$set": {"password": hash_password(password), "updated_at": datetime.utcnow()},
            "$unset": {"reset_token": "", "reset_password_expires": ""},
        }
    )

    subject, html = templates.password_updated(user["email"], user.get("first_name", ""))
    queue_email(background_tasks, mailer, user["email"], subject, html)
