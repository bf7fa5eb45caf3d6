import logging
import secrets
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

logger = logging.getLogger(__name__)

# Fields that never leave the API
PRIVATE_USER_FIELDS = ("password", "reset_token", "reset_password_expires")


class MongoManager:
    """Owns the Motor client for the lifetime of the application"""

    def __init__(self, mongo_url: str, db_name: str):
        self.mongo_url = mongo_url
        self.db_name = db_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> AsyncIOMotorDatabase:
        self.client = AsyncIOMotorClient(self.mongo_url)
        self.db = self.client[self.db_name]
        logger.info("Connected to MongoDB database %s", self.db_name)
        return self.db

    async def disconnect(self):
        if self.client:
            self.client.close()
            self.client = None
            self.db = None


async def create_indexes(db: AsyncIOMotorDatabase):
    """
    Create indexes for lookups and data integrity
    Called during application startup
    """

    # Identity
    await db.users.create_index("user_id", unique=True)
    await db.users.create_index("email", unique=True)
    await db.users.create_index("reset_token")
    await db.profiles.create_index("profile_id", unique=True)

    # OTPs expire five minutes after creation
    await db.otps.create_index("created_at", expireAfterSeconds=300)
    await db.otps.create_index([("email", 1), ("created_at", -1)])
    await db.otps.create_index("otp")

    # Catalog
    await db.categories.create_index("category_id", unique=True)
    await db.categories.create_index("name", unique=True)
    await db.courses.create_index("course_id", unique=True)
    await db.courses.create_index("instructor_id")
    await db.courses.create_index([("category_id", 1), ("status", 1)])
    await db.courses.create_index("course_content")
    await db.sections.create_index("section_id", unique=True)
    await db.subsections.create_index("subsection_id", unique=True)

    # One progress record and one review per (course, user)
    await db.course_progress.create_index("progress_id", unique=True)
    await db.course_progress.create_index([("course_id", 1), ("user_id", 1)], unique=True)
    await db.ratings_and_reviews.create_index("review_id", unique=True)
    await db.ratings_and_reviews.create_index([("course_id", 1), ("user_id", 1)], unique=True)

    # Payments
    await db.payments.create_index("razorpay_order_id", unique=True)
    await db.payments.create_index("user_id")

    logger.info("MongoDB indexes created")


def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{secrets.token_hex(6).upper()}"


def serialize_mongo(doc: Optional[dict]) -> Optional[dict]:
    """Convert a stored document to a JSON-safe dict"""
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc


def serialize_many(docs: list) -> list:
    return [serialize_mongo(doc) for doc in docs]


def public_user(doc: Optional[dict]) -> Optional[dict]:
    """User document without credentials or reset tokens"""
    user = serialize_mongo(doc)
    if user is None:
        return None
    for key in PRIVATE_USER_FIELDS:
        user.pop(key, None)
    return user
