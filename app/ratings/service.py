import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.core.database import generate_id, serialize_mongo
from app.core.errors import ConflictError, Forbidden, NotFoundError, ValidationFailed

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


async def submit_rating(
    db: AsyncIOMotorDatabase,
    course_id: Optional[str],
    user_id: str,
    rating,
    review: Optional[str],
) -> dict:
    """
    One review per enrolled student per course

    Raises:
        400: Rating outside 1..5
        404: Course missing
        403: Caller is not enrolled
        409: Caller already reviewed this course
    """
    if not course_id or rating is None:
        raise ValidationFailed("Course ID and rating are required.")
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValidationFailed("Rating must be a whole number between 1 and 5.")
    if rating < MIN_RATING or rating > MAX_RATING:
        raise ValidationFailed("Rating must be a whole number between 1 and 5.")

    course = await db.courses.find_one({"course_id": course_id})
    if not course:
        raise NotFoundError("Course not found")

    if user_id not in [str(s) for s in course.get("students_enrolled", [])]:
        raise Forbidden("Student is not enrolled in the course")

    if await db.ratings_and_reviews.find_one({"course_id": course_id, "user_id": user_id}):
        raise ConflictError("Course is already reviewed by the user")

    document = {
        "review_id": generate_id("REV"),
        "course_id": course_id,
        "user_id": user_id,
        "rating": rating,
        "review": review or "",
        "created_at": datetime.utcnow(),
    }
    try:
        await db.ratings_and_reviews.insert_one(document)
    except DuplicateKeyError:
        raise ConflictError("Course is already reviewed by the user")

    try:
        await db.courses.update_one(
            {"course_id": course_id},
            {"$push": {"ratings_and_reviews": document["review_id"]}}
        )
    except Exception:
        await db.ratings_and_reviews.delete_one({"review_id": document["review_id"]})
        raise

    logger.info("Review %s added to %s", document["review_id"], course_id)
    return serialize_mongo(document)


async def average_rating(db: AsyncIOMotorDatabase, course_id: str) -> float:
    """Mean rating for a course, 0 when it has no reviews"""
    pipeline = [
        {"$match": {"course_id": course_id}},
        {"$group": {"_id": None, "average_rating": {"$avg": "$rating"}}},
    ]
    result = await db.ratings_and_reviews.aggregate(pipeline).to_list(length=1)
    if not result:
        return 0
    return result[0]["average_rating"]


async def list_all_ratings(db: AsyncIOMotorDatabase) -> List[dict]:
    reviews = await db.ratings_and_reviews.find({}).sort("rating", -1).to_list(length=None)

    results = []
    for review in reviews:
        review = serialize_mongo(review)
        user = await db.users.find_one({"user_id": review["user_id"]})
        course = await db.courses.find_one({"course_id": review["course_id"]})
        review["user"] = {
            "first_name": user.get("first_name"),
            "last_name": user.get("last_name"),
            "email": user.get("email"),
            "image": user.get("image"),
        } if user else None
        review["course"] = {"course_name": course.get("course_name")} if course else None
        results.append(review)

    return results
