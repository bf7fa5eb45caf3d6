import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth import service
from app.auth.models import (
    ChangePasswordRequest, LoginRequest, ResetPasswordRequest,
    ResetPasswordTokenRequest, SendOtpRequest, SignUpRequest,
)
from app.auth.permissions import UserContext, get_current_user
from app.auth.tokens import TOKEN_COOKIE
from app.core.config import Settings
from app.core.dependencies import get_db, get_mailer, get_settings

router = APIRouter(tags=["Auth"])
logger = logging.getLogger(__name__)


@router.post("/sendotp")
async def send_otp_endpoint(
    payload: SendOtpRequest,
    background_tasks: BackgroundTasks,
    db: AsyncIOMotorDatabase = Depends(get_db),
    mailer=Depends(get_mailer),
):
    try:
        await service.send_otp(db, payload.email, mailer, background_tasks)
        return {
            "success": True,
            "message": "OTP sent successfully! Please check your email for the verification code.",
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("sendotp failed")
        raise HTTPException(status_code=500, detail="Failed to send OTP. Please try again later.")


@router.post("/signup")
async def signup_endpoint(payload: SignUpRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        user = await service.sign_up(db, payload)
        return {
            "success": True,
            "message": "Account created successfully! Welcome to EduElevate.",
            "data": user,
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("signup failed")
        raise HTTPException(status_code=500, detail="Registration failed. Please try again later.")


@router.post("/login")
async def login_endpoint(
    payload: LoginRequest,
    response: Response,
    db: AsyncIOMotorDatabase = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        token, user = await service.login(
            db, payload.email, payload.password, settings.jwt_secret, settings.jwt_expires_days
        )
        response.set_cookie(
            TOKEN_COOKIE,
            token,
            max_age=settings.jwt_expires_days * 24 * 60 * 60,
            httponly=True,
        )
        return {"success": True, "token": token, "user": user, "message": "User Login Success"}
    except HTTPException:
        raise
    except Exception:
        logger.exception("login failed")
        raise HTTPException(status_code=500, detail="Login failed. Please try again later.")


@router.post("/changepassword")
async def change_password_endpoint(
    payload: ChangePasswordRequest,
    background_tasks: BackgroundTasks,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    mailer=Depends(get_mailer),
):
    try:
        await service.change_password(db, user, payload, mailer, background_tasks)
        return {
            "success": True,
            "message": "Password updated successfully! You can now login with your new password.",
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("changepassword failed")
        raise HTTPException(status_code=500, detail="Failed to update password. Please try again later.")


@router.post("/reset-password-token")
async def reset_password_token_endpoint(
    payload: ResetPasswordTokenRequest,
    background_tasks: BackgroundTasks,
    db: AsyncIOMotorDatabase = Depends(get_db),
    mailer=Depends(get_mailer),
    settings: Settings = Depends(get_settings),
):
    try:
        await service.reset_password_token(db, payload.email, settings.frontend_url, mailer, background_tasks)
        return {
            "success": True,
            "message": "Password reset link sent successfully! Please check your email.",
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("reset-password-token failed")
        raise HTTPException(status_code=500, detail="Failed to send password reset email. Please try again later.")


@router.post("/reset-password")
async def reset_password_endpoint(
    payload: ResetPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncIOMotorDatabase = Depends(get_db),
    mailer=Depends(get_mailer),
):
    try:
        await service.reset_password(
            db, payload.token, payload.password, payload.confirm_password, mailer, background_tasks
        )
        return {
            "success": True,
            "message": "Password reset successfully! You can now login with your new password.",
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("reset-password failed")
        raise HTTPException(status_code=500, detail="Failed to reset password. Please try again later.")
