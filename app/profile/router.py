import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.auth.permissions import UserContext, get_current_user, require_instructor
from app.core.dependencies import get_db, get_uploader
from app.enrollment.service import get_enrolled_courses
from app.media.uploader import upload_or_fail
from app.profile import service

router = APIRouter(tags=["Profile"])
logger = logging.getLogger(__name__)


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    about: Optional[str] = None
    contact_number: Optional[str] = None
    gender: Optional[str] = None


@router.get("/getUserDetails")
async def get_user_details(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        details = await service.get_user_details(db, user.user_id)
        return {"success": True, "message": "User data fetched successfully", "data": details}
    except HTTPException:
        raise
    except Exception:
        logger.exception("getUserDetails failed")
        raise HTTPException(status_code=500, detail="Failed to fetch user details.")


@router.put("/updateProfile")
async def update_profile(
    payload: ProfileUpdate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        details = await service.update_profile(db, user.user_id, payload.dict())
        return {"success": True, "message": "Profile updated successfully", "data": details}
    except HTTPException:
        raise
    except Exception:
        logger.exception("updateProfile failed")
        raise HTTPException(status_code=500, detail="Failed to update profile.")


@router.put("/updateDisplayPicture")
async def update_display_picture(
    display_picture: UploadFile = File(...),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    uploader=Depends(get_uploader),
):
    try:
        upload = await upload_or_fail(uploader, display_picture)
        details = await service.update_display_picture(db, user.user_id, upload.secure_url)
        return {"success": True, "message": "Image updated successfully", "data": details}
    except HTTPException:
        raise
    except Exception:
        logger.exception("updateDisplayPicture failed")
        raise HTTPException(status_code=500, detail="Failed to update display picture.")


@router.delete("/deleteProfile")
async def delete_profile(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        await service.delete_account(db, user.user_id)
        return {"success": True, "message": "User deleted successfully"}
    except HTTPException:
        raise
    except Exception:
        logger.exception("deleteProfile failed")
        raise HTTPException(status_code=500, detail="User cannot be deleted successfully")


@router.get("/getEnrolledCourses")
async def enrolled_courses(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        courses = await get_enrolled_courses(db, user.user_id)
        return {"success": True, "message": "Enrolled courses fetched successfully", "data": courses}
    except HTTPException:
        raise
    except Exception:
        logger.exception("getEnrolledCourses failed")
        raise HTTPException(status_code=500, detail="Failed to fetch enrolled courses.")


@router.get("/instructorDashboard")
async def instructor_dashboard(
    user: UserContext = Depends(require_instructor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        stats = await service.instructor_dashboard(db, user.user_id)
        return {"success": True, "message": "Instructor dashboard fetched successfully", "data": stats}
    except HTTPException:
        raise
    except Exception:
        logger.exception("instructorDashboard failed")
        raise HTTPException(status_code=500, detail="Internal Server Error")
