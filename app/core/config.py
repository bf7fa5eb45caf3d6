"""
EduElevate Configuration
Environment-driven settings shared by every component
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


def _split_origins(raw: str) -> List[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass
class Settings:
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db_name: str = "eduelevate"

    jwt_secret: str = "change-me"
    jwt_expires_days: int = 30

    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: str = ""
    payment_currency: str = "INR"

    mail_host: Optional[str] = None
    mail_port: int = 587
    mail_user: Optional[str] = None
    mail_pass: Optional[str] = None
    mail_from: str = "EduElevate <no-reply@eduelevate.app>"

    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    media_folder: str = "eduelevate"

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash-lite"

    frontend_url: str = "http://localhost:3000"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build settings from the process environment (and a local .env file)"""
    load_dotenv()

    return Settings(
        mongo_url=os.getenv("MONGO_URL", "mongodb://localhost:27017"),
        mongo_db_name=os.getenv("MONGO_DB_NAME", "eduelevate"),
        jwt_secret=os.getenv("JWT_SECRET", "change-me"),
        jwt_expires_days=int(os.getenv("JWT_EXPIRES_DAYS", "30")),
        razorpay_key_id=os.getenv("RAZORPAY_KEY_ID"),
        razorpay_key_secret=os.getenv("RAZORPAY_KEY_SECRET", ""),
        payment_currency=os.getenv("PAYMENT_CURRENCY", "INR"),
        mail_host=os.getenv("MAIL_HOST"),
        mail_port=int(os.getenv("MAIL_PORT", "587")),
        mail_user=os.getenv("MAIL_USER"),
        mail_pass=os.getenv("MAIL_PASS"),
        mail_from=os.getenv("MAIL_FROM", "EduElevate <no-reply@eduelevate.app>"),
        cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
        cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY"),
        cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET"),
        media_folder=os.getenv("MEDIA_FOLDER", "eduelevate"),
        gemini_api_key=os.getenv("GEMINI_API_KEY"),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite"),
        frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
        cors_origins=_split_origins(os.getenv("CORS_ORIGINS", "http://localhost:3000")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
