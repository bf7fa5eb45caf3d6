"""
Enrollment & progress engine

Enrollment touches three collections per course (course membership, a
progress record and the student's own lists). There is no multi-document
transaction: each course is a compensated unit, so a failure part way
through undoes that course's earlier writes before the error propagates.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from fastapi import BackgroundTasks
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.catalog.database import load_sections
from app.catalog.durations import format_duration, round_half_up, total_course_seconds
from app.core.database import generate_id, serialize_mongo
from app.core.errors import ConflictError, Forbidden, NotFoundError, ValidationFailed
from app.notifications import templates
from app.notifications.mailer import queue_email

logger = logging.getLogger(__name__)


class LectureOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    ALREADY_COMPLETE = "already_complete"


# ==================== ENROLLMENT ====================

async def _undo_enrollment(
    db: AsyncIOMotorDatabase,
    course_id: str,
    user_id: str,
    added_membership: bool,
    progress_id: Optional[str],
):
    """Reverse whatever part of one course's enrollment already happened"""
    if progress_id:
        await db.course_progress.delete_one({"progress_id": progress_id})
    if added_membership:
        await db.courses.update_one({"course_id": course_id}, {"$pull": {"students_enrolled": user_id}})
    if progress_id:
        # The failed user update may or may not have landed
        pull = {"course_progress": progress_id}
        if added_membership:
            pull["courses"] = course_id
        try:
            await db.users.update_one({"user_id": user_id}, {"$pull": pull})
        except Exception:
            logger.exception("Could not detach progress %s from user %s", progress_id, user_id)


async def enroll_student(db: AsyncIOMotorDatabase, course_id: str, user_id: str) -> dict:
    """
    Enroll one student in one course

    A progress record left over for a student who was not yet a member is
    adopted and cleared rather than duplicated.

    Returns:
        The course document as it was before enrollment

    Raises:
        404: Course or student missing
        409: The student is already enrolled and has a progress record
    """
    course = await db.courses.find_one({"course_id": course_id})
    if not course:
        raise NotFoundError(f"Course not found: {course_id}")

    result = await db.courses.update_one(
        {"course_id": course_id},
        {"$addToSet": {"students_enrolled": user_id}}
    )
    # Only a membership this call added may be removed on failure
    added_membership = result.modified_count > 0
    progress_id = None

    try:
        existing = await db.course_progress.find_one({"course_id": course_id, "user_id": user_id})
        if existing and not added_membership:
            raise ConflictError("Student is already enrolled in this course.")

        if existing:
            linked_progress = existing["progress_id"]
            await db.course_progress.update_one(
                {"progress_id": linked_progress},
                {"$set": {"completed_videos": []}}
            )
            logger.info("Adopted progress %s for %s in %s", linked_progress, user_id, course_id)
        else:
            progress = {
                "progress_id": generate_id("PRG"),
                "course_id": course_id,
                "user_id": user_id,
                "completed_videos": [],
                "created_at": datetime.utcnow(),
            }
            try:
                await db.course_progress.insert_one(progress)
            except DuplicateKeyError:
                raise ConflictError("Student is already enrolled in this course.")
            progress_id = linked_progress = progress["progress_id"]

        updated = await db.users.update_one(
            {"user_id": user_id},
            {"$addToSet": {"courses": course_id, "course_progress": linked_progress}}
        )
        if updated.matched_count == 0:
            raise NotFoundError("Student account not found.")
    except Exception:
        logger.warning("Enrollment of %s in %s failed, rolling back", user_id, course_id)
        await _undo_enrollment(db, course_id, user_id, added_membership, progress_id)
        raise

    logger.info("Enrolled %s in %s", user_id, course_id)
    return course


async def enroll_students(
    db: AsyncIOMotorDatabase,
    course_ids: Iterable[str],
    user_id: str,
    mailer,
    background_tasks: BackgroundTasks,
) -> List[str]:
    """
    Enroll a student in each course, in order

    Courses processed before a failing one stay enrolled. The enrollment
    email for each course is queued only after its writes succeed.
    """
    course_ids = list(course_ids or [])
    if not course_ids or not user_id:
        raise ValidationFailed("Please Provide Course ID and User ID")

    student = await db.users.find_one({"user_id": user_id})
    if not student:
        raise NotFoundError("Student account not found.")
    student_name = f"{student.get('first_name', '')} {student.get('last_name', '')}".strip()

    enrolled = []
    for course_id in course_ids:
        course = await enroll_student(db, course_id, user_id)
        enrolled.append(course_id)

        subject, html = templates.course_enrollment(course.get("course_name", ""), student_name)
        queue_email(background_tasks, mailer, student["email"], subject, html)

    return enrolled


# ==================== PROGRESS ====================

async def record_lecture_complete(
    db: AsyncIOMotorDatabase,
    course_id: Optional[str],
    subsection_id: Optional[str],
    user_id: str,
) -> LectureOutcome:
    """
    Mark a lecture as watched; reporting it again changes nothing
    Only enrolled students may report, and only lectures of that course
    """
    if not course_id or not subsection_id:
        raise ValidationFailed("Course ID and lecture ID are required.")

    course = await db.courses.find_one({"course_id": course_id})
    if not course:
        raise NotFoundError("Course not found")
    if str(user_id) not in [str(s) for s in course.get("students_enrolled", [])]:
        raise Forbidden("Student is not enrolled in the course")

    subsection = await db.subsections.find_one({"subsection_id": subsection_id})
    if not subsection:
        raise NotFoundError("Invalid subsection")
    owning_section = await db.sections.find_one({
        "section_id": {"$in": course.get("course_content", [])},
        "subsections": subsection_id,
    })
    if not owning_section:
        raise NotFoundError("Lecture does not belong to this course")

    progress = await db.course_progress.find_one({"course_id": course_id, "user_id": user_id})
    if not progress:
        record = {
            "progress_id": generate_id("PRG"),
            "course_id": course_id,
            "user_id": user_id,
            "completed_videos": [subsection_id],
            "created_at": datetime.utcnow(),
        }
        try:
            await db.course_progress.insert_one(record)
            await db.users.update_one(
                {"user_id": user_id},
                {"$addToSet": {"course_progress": record["progress_id"]}}
            )
            return LectureOutcome.CREATED
        except DuplicateKeyError:
            # Lost the race to another request creating the same record
            logger.info("Progress for %s/%s created concurrently", course_id, user_id)

    result = await db.course_progress.update_one(
        {"course_id": course_id, "user_id": user_id},
        {"$addToSet": {"completed_videos": subsection_id}}
    )
    if result.modified_count == 0:
        return LectureOutcome.ALREADY_COMPLETE
    return LectureOutcome.UPDATED


def compute_progress_percentage(sections: list, completed: Iterable) -> int:
    total = sum(len(section.get("subsections", [])) for section in sections)
    if total == 0:
        return 0
    percentage = round_half_up(100 * len(set(completed)) / total)
    return min(percentage, 100)


async def get_enrolled_courses(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    """Enrolled courses with content, total duration and progress"""
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise NotFoundError(f"Could not find user with id: {user_id}")

    courses = []
    for course_id in user.get("courses", []):
        course = await db.courses.find_one({"course_id": course_id})
        if not course:
            continue
        course = serialize_mongo(course)
        sections = await load_sections(db, course.get("course_content", []))
        progress = await db.course_progress.find_one({"course_id": course_id, "user_id": user_id})
        completed = progress.get("completed_videos", []) if progress else []

        course["course_content"] = sections
        course["total_duration"] = format_duration(total_course_seconds(sections))
        course["progress_percentage"] = compute_progress_percentage(sections, completed)
        courses.append(course)

    return courses
