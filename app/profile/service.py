import logging
from datetime import datetime
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.database import public_user, serialize_mongo
from app.core.errors import NotFoundError

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("about", "gender", "date_of_birth", "contact_number")


async def get_user_details(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    """Public user record with its profile inlined"""
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise NotFoundError("User not found")

    details = public_user(user)
    details["additional_details"] = serialize_mongo(
        await db.profiles.find_one({"profile_id": user.get("profile_id")})
    )
    return details


async def update_profile(db: AsyncIOMotorDatabase, user_id: str, updates: dict) -> dict:
    """Only fields present in the request are written"""
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise NotFoundError("User not found")

    changes = {key: updates[key] for key in PROFILE_FIELDS if updates.get(key) is not None}
    if changes:
        await db.profiles.update_one({"profile_id": user.get("profile_id")}, {"$set": changes})

    names = {key: updates[key] for key in ("first_name", "last_name") if updates.get(key)}
    if names:
        names["updated_at"] = datetime.utcnow()
        await db.users.update_one({"user_id": user_id}, {"$set": names})

    return await get_user_details(db, user_id)


async def update_display_picture(db: AsyncIOMotorDatabase, user_id: str, image_url: str) -> dict:
    result = await db.users.update_one({"user_id": user_id}, {"$set": {"image": image_url}})
    if result.matched_count == 0:
        raise NotFoundError("User not found")
    return await get_user_details(db, user_id)


async def delete_account(db: AsyncIOMotorDatabase, user_id: str):
    """
    Remove the user, their profile and progress, and detach them from
    every course they were enrolled in
    """
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise NotFoundError("User not found")

    for course_id in user.get("courses", []):
        await db.courses.update_one({"course_id": course_id}, {"$pull": {"students_enrolled": user_id}})

    await db.course_progress.delete_many({"user_id": user_id})
    await db.profiles.delete_one({"profile_id": user.get("profile_id")})
    await db.users.delete_one({"user_id": user_id})

    logger.info("Deleted account %s", user_id)


async def instructor_dashboard(db: AsyncIOMotorDatabase, instructor_id: str) -> List[dict]:
    courses = await db.courses.find({"instructor_id": instructor_id}).to_list(length=None)

    stats = []
    for course in courses:
        students = len(course.get("students_enrolled", []))
        stats.append({
            "course_id": course["course_id"],
            "course_name": course.get("course_name"),
            "course_description": course.get("course_description"),
            "total_students_enrolled": students,
            "total_amount_generated": students * float(course.get("price", 0)),
        })
    return stats
