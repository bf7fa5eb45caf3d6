import json
import logging
import random
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.catalog.durations import format_duration, total_course_seconds
from app.catalog.models import EDITABLE_COURSE_FIELDS, CourseStatus
from app.core.database import generate_id, serialize_many, serialize_mongo
from app.core.errors import ConflictError, Forbidden, NotFoundError, ValidationFailed

logger = logging.getLogger(__name__)

MOST_SELLING_LIMIT = 10
OTHER_CATEGORY_LIMIT = 4


async def _fetch_ordered(collection, id_field: str, ids: List[str]) -> List[dict]:
    """Load documents referenced by an ID array, preserving the array's order"""
    if not ids:
        return []
    docs = await collection.find({id_field: {"$in": list(ids)}}).to_list(length=None)
    by_id = {doc[id_field]: serialize_mongo(doc) for doc in docs}
    return [by_id[i] for i in ids if i in by_id]


def _parse_list_field(value) -> List[str]:
    """Tags and instructions arrive as JSON arrays from multipart forms"""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return [part.strip() for part in str(value).split(",") if part.strip()]
    if isinstance(parsed, list):
        return [str(v) for v in parsed]
    return [str(parsed)]


# ==================== CATEGORY CRUD ====================

async def create_category(db: AsyncIOMotorDatabase, name: Optional[str], description: Optional[str]) -> dict:
    if not name or not description:
        raise ValidationFailed("Both name and description are required to create a category.")

    category = {
        "category_id": generate_id("CAT"),
        "name": name,
        "description": description,
        "courses": [],
        "created_at": datetime.utcnow(),
    }
    try:
        await db.categories.insert_one(category)
    except DuplicateKeyError:
        raise ConflictError(f"Category '{name}' already exists.")
    return serialize_mongo(category)


async def list_categories(db: AsyncIOMotorDatabase) -> List[dict]:
    categories = await db.categories.find({}).sort("name", 1).to_list(length=None)
    return serialize_many(categories)


async def _published_courses(db: AsyncIOMotorDatabase, query: dict, limit: Optional[int] = None) -> List[dict]:
    cursor = db.courses.find({**query, "status": CourseStatus.PUBLISHED.value})
    if limit:
        cursor = cursor.limit(limit)
    courses = await cursor.to_list(length=limit)
    return [await _attach_summary(db, course) for course in courses]


async def _attach_summary(db: AsyncIOMotorDatabase, course: dict) -> dict:
    """Instructor name and reviews for catalog cards"""
    course = serialize_mongo(course)
    instructor = await db.users.find_one({"user_id": course.get("instructor_id")})
    course["instructor"] = {
        "user_id": instructor["user_id"],
        "first_name": instructor.get("first_name"),
        "last_name": instructor.get("last_name"),
        "email": instructor.get("email"),
    } if instructor else None
    course["ratings_and_reviews"] = await _fetch_ordered(
        db.ratings_and_reviews, "review_id", course.get("ratings_and_reviews", [])
    )
    return course


async def category_page_details(db: AsyncIOMotorDatabase, category_id: str) -> dict:
    """
    Selected category's published courses, one random other category,
    and the best sellers across the catalog
    """
    selected = await db.categories.find_one({"category_id": category_id})
    if not selected:
        raise NotFoundError("Category Not Found")

    selected_courses = await _published_courses(db, {"category_id": category_id})
    if not selected_courses:
        raise NotFoundError("No courses found for the selected category.")

    others = await db.categories.find({"category_id": {"$ne": category_id}}).to_list(length=None)
    different = None
    if others:
        picked = serialize_mongo(random.choice(others))
        picked["courses"] = await _published_courses(
            db, {"category_id": picked["category_id"]}, limit=OTHER_CATEGORY_LIMIT
        )
        different = picked

    published = await _published_courses(db, {})
    published.sort(key=lambda c: len(c.get("students_enrolled", [])), reverse=True)

    selected = serialize_mongo(selected)
    selected["courses"] = selected_courses
    return {
        "selected_category": selected,
        "different_category": different,
        "most_selling_courses": published[:MOST_SELLING_LIMIT],
    }


# ==================== COURSE CRUD ====================

async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    """Get course by ID"""
    return await db.courses.find_one({"course_id": course_id})


async def verify_course_owner(db: AsyncIOMotorDatabase, course_id: str, user_id: str) -> dict:
    course = await get_course(db, course_id)
    if not course:
        raise NotFoundError("Course not found")

    if course.get("instructor_id") != user_id:
        raise Forbidden("Only the course instructor can modify this course")

    return course


async def create_course(
    db: AsyncIOMotorDatabase,
    instructor_id: str,
    data: dict,
    thumbnail_url: Optional[str] = None,
) -> dict:
    """
    Create new course owned by the calling instructor
    Links it into the instructor's and the category's course lists
    """
    required = ["course_name", "course_description", "what_you_will_learn", "price", "category_id", "tag", "instructions"]
    if any(data.get(key) in (None, "") for key in required):
        raise ValidationFailed("All fields are required to create a course.")

    instructor = await db.users.find_one({"user_id": instructor_id, "account_type": "Instructor"})
    if not instructor:
        raise NotFoundError("Instructor Details Not Found")

    category = await db.categories.find_one({"category_id": data["category_id"]})
    if not category:
        raise NotFoundError("Category not found. Please select a valid category.")

    try:
        price = float(data["price"])
    except (TypeError, ValueError):
        raise ValidationFailed("Price must be a number.")
    if price < 0:
        raise ValidationFailed("Price cannot be negative.")

    status = data.get("status") or CourseStatus.DRAFT.value
    if status not in {s.value for s in CourseStatus}:
        raise ValidationFailed("Status must be Draft or Published.")

    course = {
        "course_id": generate_id("COURSE"),
        "course_name": data["course_name"],
        "course_description": data["course_description"],
        "what_you_will_learn": data["what_you_will_learn"],
        "price": price,
        "thumbnail": thumbnail_url,
        "tag": _parse_list_field(data["tag"]),
        "instructions": _parse_list_field(data["instructions"]),
        "status": status,
        "instructor_id": instructor_id,
        "category_id": data["category_id"],
        "course_content": [],
        "ratings_and_reviews": [],
        "students_enrolled": [],
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }

    await db.courses.insert_one(course)
    await db.users.update_one({"user_id": instructor_id}, {"$push": {"courses": course["course_id"]}})
    await db.categories.update_one({"category_id": data["category_id"]}, {"$push": {"courses": course["course_id"]}})

    logger.info("Instructor %s created course %s", instructor_id, course["course_id"])
    return serialize_mongo(course)


async def edit_course(
    db: AsyncIOMotorDatabase,
    course_id: str,
    user_id: str,
    updates: dict,
    thumbnail_url: Optional[str] = None,
) -> dict:
    """Update only the provided fields"""
    course = await verify_course_owner(db, course_id, user_id)

    changes = {}
    for key, value in updates.items():
        if key not in EDITABLE_COURSE_FIELDS or value is None:
            continue
        if key in ("tag", "instructions"):
            changes[key] = _parse_list_field(value)
        elif key == "price":
            try:
                changes[key] = float(value)
            except (TypeError, ValueError):
                raise ValidationFailed("Price must be a number.")
        elif key == "status" and value not in {s.value for s in CourseStatus}:
            raise ValidationFailed("Status must be Draft or Published.")
        else:
            changes[key] = value

    if thumbnail_url:
        changes["thumbnail"] = thumbnail_url

    new_category = changes.get("category_id")
    if new_category and new_category != course.get("category_id"):
        if not await db.categories.find_one({"category_id": new_category}):
            raise NotFoundError("Category not found. Please select a valid category.")
        await db.categories.update_one({"category_id": course.get("category_id")}, {"$pull": {"courses": course_id}})
        await db.categories.update_one({"category_id": new_category}, {"$addToSet": {"courses": course_id}})

    if changes:
        changes["updated_at"] = datetime.utcnow()
        await db.courses.update_one({"course_id": course_id}, {"$set": changes})

    return await populate_course(db, await get_course(db, course_id))


async def list_published_courses(db: AsyncIOMotorDatabase) -> List[dict]:
    courses = await db.courses.find({"status": CourseStatus.PUBLISHED.value}).sort("created_at", -1).to_list(length=None)
    results = []
    for course in courses:
        summary = await _attach_summary(db, course)
        results.append({
            "course_id": summary["course_id"],
            "course_name": summary["course_name"],
            "price": summary["price"],
            "thumbnail": summary.get("thumbnail"),
            "instructor": summary["instructor"],
            "ratings_and_reviews": summary["ratings_and_reviews"],
            "students_enrolled": summary.get("students_enrolled", []),
        })
    return results


async def load_sections(db: AsyncIOMotorDatabase, section_ids: List[str]) -> List[dict]:
    """Sections in course order, each with its subsections in section order"""
    sections = await _fetch_ordered(db.sections, "section_id", section_ids)
    for section in sections:
        section["subsections"] = await _fetch_ordered(
            db.subsections, "subsection_id", section.get("subsections", [])
        )
    return sections


async def populate_course(db: AsyncIOMotorDatabase, course: dict) -> dict:
    """Course with instructor, category, reviews and full content resolved"""
    populated = await _attach_summary(db, course)
    category = await db.categories.find_one({"category_id": course.get("category_id")})
    populated["category"] = serialize_mongo(category)
    populated["course_content"] = await load_sections(db, course.get("course_content", []))
    return populated


async def get_course_details(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course = await get_course(db, course_id)
    if not course:
        raise NotFoundError(f"Could not find the course with {course_id}")

    details = await populate_course(db, course)
    return {
        "course_details": details,
        "total_duration": format_duration(total_course_seconds(details["course_content"])),
    }


async def get_full_course_details(db: AsyncIOMotorDatabase, course_id: str, user_id: str) -> dict:
    """Course details plus the caller's completed lectures"""
    data = await get_course_details(db, course_id)
    progress = await db.course_progress.find_one({"course_id": course_id, "user_id": user_id})
    data["completed_videos"] = progress.get("completed_videos", []) if progress else []
    return data


async def get_instructor_courses(db: AsyncIOMotorDatabase, instructor_id: str) -> List[dict]:
    courses = await db.courses.find({"instructor_id": instructor_id}).sort("created_at", -1).to_list(length=None)
    results = []
    for course in courses:
        course = serialize_mongo(course)
        course["course_content"] = await load_sections(db, course.get("course_content", []))
        results.append(course)
    return results


async def delete_course(db: AsyncIOMotorDatabase, course_id: str, user_id: str):
    """
    Delete a course and everything it owns
    Students are unenrolled, sections and subsections removed
    """
    course = await verify_course_owner(db, course_id, user_id)

    # Unenroll students
    for student_id in course.get("students_enrolled", []):
        await db.users.update_one({"user_id": student_id}, {"$pull": {"courses": course_id}})

    progress_docs = await db.course_progress.find({"course_id": course_id}).to_list(length=None)
    for progress in progress_docs:
        await db.users.update_one(
            {"user_id": progress["user_id"]},
            {"$pull": {"course_progress": progress["progress_id"]}}
        )
    await db.course_progress.delete_many({"course_id": course_id})
    await db.ratings_and_reviews.delete_many({"course_id": course_id})

    # Sections and their subsections
    for section_id in course.get("course_content", []):
        section = await db.sections.find_one({"section_id": section_id})
        if section:
            await db.subsections.delete_many({"subsection_id": {"$in": section.get("subsections", [])}})
        await db.sections.delete_one({"section_id": section_id})

    await db.categories.update_one({"category_id": course.get("category_id")}, {"$pull": {"courses": course_id}})
    await db.users.update_one({"user_id": course.get("instructor_id")}, {"$pull": {"courses": course_id}})
    await db.courses.delete_one({"course_id": course_id})

    logger.info("Course %s deleted by %s", course_id, user_id)


# ==================== SECTION CRUD ====================

async def find_course_for_section(db: AsyncIOMotorDatabase, section_id: str) -> Optional[dict]:
    """Sections carry no back-reference; the owning course lists them"""
    return await db.courses.find_one({"course_content": section_id})


async def verify_section_owner(db: AsyncIOMotorDatabase, section_id: str, user_id: str) -> dict:
    section = await db.sections.find_one({"section_id": section_id})
    if not section:
        raise NotFoundError("Section not found")

    course = await find_course_for_section(db, section_id)
    if not course:
        raise NotFoundError("Course for this section not found")
    if course.get("instructor_id") != user_id:
        raise Forbidden("Only the course instructor can modify this course")

    return section


async def verify_subsection_owner(db: AsyncIOMotorDatabase, section_id: str, subsection_id: str, user_id: str) -> dict:
    section = await verify_section_owner(db, section_id, user_id)
    if subsection_id not in section.get("subsections", []):
        raise NotFoundError("Subsection not found in this section")
    return section


async def create_section(db: AsyncIOMotorDatabase, course_id: str, user_id: str, section_name: Optional[str]) -> dict:
    if not section_name or not course_id:
        raise ValidationFailed("Section name and course ID are required.")

    await verify_course_owner(db, course_id, user_id)

    section = {
        "section_id": generate_id("SEC"),
        "section_name": section_name,
        "subsections": [],
    }
    await db.sections.insert_one(section)
    await db.courses.update_one({"course_id": course_id}, {"$push": {"course_content": section["section_id"]}})

    return await populate_course(db, await get_course(db, course_id))


async def update_section(db: AsyncIOMotorDatabase, section_id: str, user_id: str, section_name: Optional[str]) -> dict:
    if not section_name or not section_id:
        raise ValidationFailed("Section name and section ID are required.")

    await verify_section_owner(db, section_id, user_id)
    await db.sections.update_one({"section_id": section_id}, {"$set": {"section_name": section_name}})

    course = await find_course_for_section(db, section_id)
    return await populate_course(db, course)


async def delete_section(db: AsyncIOMotorDatabase, course_id: str, section_id: str, user_id: str):
    course = await verify_course_owner(db, course_id, user_id)
    if section_id not in course.get("course_content", []):
        raise NotFoundError("Section not found in this course")

    section = await db.sections.find_one({"section_id": section_id})
    if not section:
        raise NotFoundError("Section not found")

    await db.subsections.delete_many({"subsection_id": {"$in": section.get("subsections", [])}})
    await db.sections.delete_one({"section_id": section_id})
    await db.courses.update_one({"course_id": course_id}, {"$pull": {"course_content": section_id}})


# ==================== SUBSECTION CRUD ====================

async def populated_section(db: AsyncIOMotorDatabase, section_id: str) -> dict:
    section = serialize_mongo(await db.sections.find_one({"section_id": section_id}))
    section["subsections"] = await _fetch_ordered(db.subsections, "subsection_id", section.get("subsections", []))
    return section


async def create_subsection(
    db: AsyncIOMotorDatabase,
    section_id: str,
    user_id: str,
    title: str,
    description: str,
    time_duration: str,
    video_url: str,
) -> dict:
    await verify_section_owner(db, section_id, user_id)

    subsection = {
        "subsection_id": generate_id("SUB"),
        "title": title,
        "description": description,
        "time_duration": time_duration,
        "video_url": video_url,
    }
    await db.subsections.insert_one(subsection)
    await db.sections.update_one({"section_id": section_id}, {"$push": {"subsections": subsection["subsection_id"]}})

    return await populated_section(db, section_id)


async def update_subsection(
    db: AsyncIOMotorDatabase,
    section_id: str,
    subsection_id: str,
    user_id: str,
    updates: dict,
) -> dict:
    await verify_subsection_owner(db, section_id, subsection_id, user_id)

    changes = {key: value for key, value in updates.items() if value}
    if not changes:
        raise ValidationFailed("No fields provided to update.")

    result = await db.subsections.update_one({"subsection_id": subsection_id}, {"$set": changes})
    if result.matched_count == 0:
        raise NotFoundError("Subsection not found")

    return await populated_section(db, section_id)


async def delete_subsection(db: AsyncIOMotorDatabase, section_id: str, subsection_id: str, user_id: str) -> dict:
    await verify_subsection_owner(db, section_id, subsection_id, user_id)

    await db.subsections.delete_one({"subsection_id": subsection_id})
    await db.sections.update_one({"section_id": section_id}, {"$pull": {"subsections": subsection_id}})

    return await populated_section(db, section_id)
