import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.permissions import UserContext, get_current_user, require_admin, require_instructor
from app.catalog import database as catalog
from app.catalog.models import (
    CategoryCreate, CategoryRef, CourseRef, SectionCreate,
    SectionDelete, SectionUpdate, SubSectionDelete,
)
from app.core.dependencies import get_db, get_uploader
from app.core.errors import ValidationFailed
from app.media.uploader import resolve_video_duration, upload_or_fail

router = APIRouter(tags=["Course Catalog"])
logger = logging.getLogger(__name__)


# ==================== CATEGORIES ====================

@router.post("/createCategory")
async def create_category_endpoint(
    payload: CategoryCreate,
    user: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        category = await catalog.create_category(db, payload.name, payload.description)
        return {"success": True, "message": "Category created successfully", "data": category}
    except HTTPException:
        raise
    except Exception:
        logger.exception("createCategory failed")
        raise HTTPException(status_code=500, detail="Failed to create category. Please try again later.")


@router.get("/showAllCategories")
async def show_all_categories(db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        categories = await catalog.list_categories(db)
        return {"success": True, "message": "Categories fetched successfully", "data": categories}
    except HTTPException:
        raise
    except Exception:
        logger.exception("showAllCategories failed")
        raise HTTPException(status_code=500, detail="Failed to fetch categories.")


@router.post("/getCategoryPageDetails")
async def category_page_details_endpoint(payload: CategoryRef, db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        data = await catalog.category_page_details(db, payload.category_id)
        return {"success": True, "message": "Category page details fetched successfully", "data": data}
    except HTTPException:
        raise
    except Exception:
        logger.exception("getCategoryPageDetails failed")
        raise HTTPException(status_code=500, detail="Failed to fetch category page details.")


# ==================== COURSES ====================

@router.post("/createCourse")
async def create_course_endpoint(
    course_name: Optional[str] = Form(None),
    course_description: Optional[str] = Form(None),
    what_you_will_learn: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    tag: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None),
    status: Optional[str] = Form(None),
    instructions: Optional[str] = Form(None),
    thumbnail_image: Optional[UploadFile] = File(None),
    user: UserContext = Depends(require_instructor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    uploader=Depends(get_uploader),
):
    """
    Create a course owned by the calling instructor
    Multipart form; tag and instructions are JSON arrays
    """
    try:
        data = {
            "course_name": course_name,
            "course_description": course_description,
            "what_you_will_learn": what_you_will_learn,
            "price": price,
            "tag": tag,
            "category_id": category_id,
            "status": status,
            "instructions": instructions,
        }
        thumbnail_url = None
        if thumbnail_image is not None:
            thumbnail_url = (await upload_or_fail(uploader, thumbnail_image)).secure_url

        course = await catalog.create_course(db, user.user_id, data, thumbnail_url)
        return {"success": True, "message": "Course Created Successfully", "data": course}
    except HTTPException:
        raise
    except Exception:
        logger.exception("createCourse failed")
        raise HTTPException(status_code=500, detail="Failed to create course. Please try again later.")


@router.post("/editCourse")
async def edit_course_endpoint(
    course_id: Optional[str] = Form(None),
    course_name: Optional[str] = Form(None),
    course_description: Optional[str] = Form(None),
    what_you_will_learn: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    tag: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None),
    status: Optional[str] = Form(None),
    instructions: Optional[str] = Form(None),
    thumbnail_image: Optional[UploadFile] = File(None),
    user: UserContext = Depends(require_instructor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    uploader=Depends(get_uploader),
):
    try:
        if not course_id:
            raise ValidationFailed("Course ID is required.")

        updates = {
            "course_name": course_name,
            "course_description": course_description,
            "what_you_will_learn": what_you_will_learn,
            "price": price,
            "tag": tag,
            "category_id": category_id,
            "status": status,
            "instructions": instructions,
        }
        # Ownership is checked before anything is uploaded
        await catalog.verify_course_owner(db, course_id, user.user_id)
        thumbnail_url = None
        if thumbnail_image is not None:
            thumbnail_url = (await upload_or_fail(uploader, thumbnail_image)).secure_url

        course = await catalog.edit_course(db, course_id, user.user_id, updates, thumbnail_url)
        return {"success": True, "message": "Course updated successfully", "data": course}
    except HTTPException:
        raise
    except Exception:
        logger.exception("editCourse failed")
        raise HTTPException(status_code=500, detail="Failed to update course. Please try again later.")


@router.get("/getAllCourses")
async def get_all_courses(db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        courses = await catalog.list_published_courses(db)
        return {"success": True, "message": "Courses fetched successfully", "data": courses}
    except HTTPException:
        raise
    except Exception:
        logger.exception("getAllCourses failed")
        raise HTTPException(status_code=500, detail="Can't fetch course data.")


@router.post("/getCourseDetails")
async def get_course_details_endpoint(payload: CourseRef, db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        data = await catalog.get_course_details(db, payload.course_id)
        return {"success": True, "message": "Course details fetched successfully", "data": data}
    except HTTPException:
        raise
    except Exception:
        logger.exception("getCourseDetails failed")
        raise HTTPException(status_code=500, detail="Failed to fetch course details.")


@router.post("/getFullCourseDetails")
async def get_full_course_details_endpoint(
    payload: CourseRef,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        data = await catalog.get_full_course_details(db, payload.course_id, user.user_id)
        return {"success": True, "message": "Course details fetched successfully", "data": data}
    except HTTPException:
        raise
    except Exception:
        logger.exception("getFullCourseDetails failed")
        raise HTTPException(status_code=500, detail="Failed to fetch course details.")


@router.get("/getInstructorCourses")
async def get_instructor_courses_endpoint(
    user: UserContext = Depends(require_instructor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        courses = await catalog.get_instructor_courses(db, user.user_id)
        return {"success": True, "message": "Instructor courses fetched successfully", "data": courses}
    except HTTPException:
        raise
    except Exception:
        logger.exception("getInstructorCourses failed")
        raise HTTPException(status_code=500, detail="Failed to retrieve instructor courses.")


@router.delete("/deleteCourse")
async def delete_course_endpoint(
    payload: CourseRef,
    user: UserContext = Depends(require_instructor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        if not payload.course_id:
            raise ValidationFailed("Course ID is required.")
        await catalog.delete_course(db, payload.course_id, user.user_id)
        return {"success": True, "message": "Course deleted successfully"}
    except HTTPException:
        raise
    except Exception:
        logger.exception("deleteCourse failed")
        raise HTTPException(status_code=500, detail="Failed to delete course.")


# ==================== SECTIONS ====================

@router.post("/addSection")
async def add_section_endpoint(
    payload: SectionCreate,
    user: UserContext = Depends(require_instructor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        course = await catalog.create_section(db, payload.course_id, user.user_id, payload.section_name)
        return {"success": True, "message": "Section created successfully", "data": course}
    except HTTPException:
        raise
    except Exception:
        logger.exception("addSection failed")
        raise HTTPException(status_code=500, detail="Failed to create section.")


@router.post("/updateSection")
async def update_section_endpoint(
    payload: SectionUpdate,
    user: UserContext = Depends(require_instructor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        course = await catalog.update_section(db, payload.section_id, user.user_id, payload.section_name)
        return {"success": True, "message": "Section updated successfully", "data": course}
    except HTTPException:
        raise
    except Exception:
        logger.exception("updateSection failed")
        raise HTTPException(status_code=500, detail="Failed to update section.")


@router.post("/deleteSection")
async def delete_section_endpoint(
    payload: SectionDelete,
    user: UserContext = Depends(require_instructor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        if not payload.section_id or not payload.course_id:
            raise ValidationFailed("Section ID and course ID are required.")
        await catalog.delete_section(db, payload.course_id, payload.section_id, user.user_id)
        course = await catalog.populate_course(db, await catalog.get_course(db, payload.course_id))
        return {"success": True, "message": "Section deleted successfully", "data": course}
    except HTTPException:
        raise
    except Exception:
        logger.exception("deleteSection failed")
        raise HTTPException(status_code=500, detail="Failed to delete section.")


# ==================== SUBSECTIONS ====================

@router.post("/addSubSection")
async def add_subsection_endpoint(
    section_id: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    time_duration: Optional[str] = Form(None),
    video: Optional[UploadFile] = File(None),
    user: UserContext = Depends(require_instructor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    uploader=Depends(get_uploader),
):
    try:
        if not section_id or not title or not description or video is None:
            raise ValidationFailed("All fields are required.")

        await catalog.verify_section_owner(db, section_id, user.user_id)
        upload = await upload_or_fail(uploader, video)

        section = await catalog.create_subsection(
            db,
            section_id,
            user.user_id,
            title,
            description,
            resolve_video_duration(upload, time_duration),
            upload.secure_url,
        )
        return {"success": True, "message": "Lecture added successfully", "data": section}
    except HTTPException:
        raise
    except Exception:
        logger.exception("addSubSection failed")
        raise HTTPException(status_code=500, detail="Failed to create lecture.")


@router.post("/updateSubSection")
async def update_subsection_endpoint(
    section_id: Optional[str] = Form(None),
    subsection_id: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    time_duration: Optional[str] = Form(None),
    video: Optional[UploadFile] = File(None),
    user: UserContext = Depends(require_instructor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    uploader=Depends(get_uploader),
):
    try:
        if not section_id or not subsection_id:
            raise ValidationFailed("Section ID and lecture ID are required.")

        await catalog.verify_subsection_owner(db, section_id, subsection_id, user.user_id)
        updates = {"title": title, "description": description}
        if video is not None:
            upload = await upload_or_fail(uploader, video)
            updates["video_url"] = upload.secure_url
            updates["time_duration"] = resolve_video_duration(upload, time_duration)
        elif time_duration:
            updates["time_duration"] = time_duration

        section = await catalog.update_subsection(db, section_id, subsection_id, user.user_id, updates)
        return {"success": True, "message": "Lecture updated successfully", "data": section}
    except HTTPException:
        raise
    except Exception:
        logger.exception("updateSubSection failed")
        raise HTTPException(status_code=500, detail="Failed to update lecture.")


@router.post("/deleteSubSection")
async def delete_subsection_endpoint(
    payload: SubSectionDelete,
    user: UserContext = Depends(require_instructor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        if not payload.section_id or not payload.subsection_id:
            raise ValidationFailed("Section ID and lecture ID are required.")
        section = await catalog.delete_subsection(db, payload.section_id, payload.subsection_id, user.user_id)
        return {"success": True, "message": "Lecture deleted successfully", "data": section}
    except HTTPException:
        raise
    except Exception:
        logger.exception("deleteSubSection failed")
        raise HTTPException(status_code=500, detail="Failed to delete lecture.")
