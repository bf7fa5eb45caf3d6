from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import Settings

# ==================== DEPENDENCY FUNCTIONS ====================
# Every handle is built at startup and parked on app.state


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db(request: Request) -> AsyncIOMotorDatabase:
    """Database dependency"""
    return request.app.state.db


def get_mailer(request: Request):
    return getattr(request.app.state, "mailer", None)


def get_payment_client(request: Request):
    return getattr(request.app.state, "payment_client", None)


def get_uploader(request: Request):
    return getattr(request.app.state, "uploader", None)


def get_assistant(request: Request):
    return getattr(request.app.state, "assistant", None)
