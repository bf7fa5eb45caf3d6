import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.auth.permissions import UserContext, require_student
from app.core.dependencies import get_db
from app.enrollment.service import LectureOutcome, record_lecture_complete

router = APIRouter(tags=["Course Progress"])
logger = logging.getLogger(__name__)


class CourseProgressUpdate(BaseModel):
    course_id: Optional[str] = None
    subsection_id: Optional[str] = None


PROGRESS_MESSAGES = {
    LectureOutcome.CREATED: "Course progress created",
    LectureOutcome.UPDATED: "Course progress updated",
    LectureOutcome.ALREADY_COMPLETE: "Lecture already completed",
}


@router.post("/updateCourseProgress")
async def update_course_progress(
    payload: CourseProgressUpdate,
    user: UserContext = Depends(require_student),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        outcome = await record_lecture_complete(db, payload.course_id, payload.subsection_id, user.user_id)
        return {"success": True, "message": PROGRESS_MESSAGES[outcome], "data": {"outcome": outcome.value}}
    except HTTPException:
        raise
    except Exception:
        logger.exception("updateCourseProgress failed")
        raise HTTPException(status_code=500, detail="Failed to update course progress.")
