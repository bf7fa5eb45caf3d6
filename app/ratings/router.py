import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.auth.permissions import UserContext, require_student
from app.core.dependencies import get_db
from app.core.errors import ValidationFailed
from app.ratings import service

router = APIRouter(tags=["Ratings & Reviews"])
logger = logging.getLogger(__name__)


class RatingCreate(BaseModel):
    course_id: Optional[str] = None
    rating: Optional[int] = None
    review: Optional[str] = None


class AverageRatingRequest(BaseModel):
    course_id: Optional[str] = None


@router.post("/createRating")
async def create_rating(
    payload: RatingCreate,
    user: UserContext = Depends(require_student),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        review = await service.submit_rating(db, payload.course_id, user.user_id, payload.rating, payload.review)
        return {"success": True, "message": "Rating and review created successfully", "data": review}
    except HTTPException:
        raise
    except Exception:
        logger.exception("createRating failed")
        raise HTTPException(status_code=500, detail="Failed to create rating.")


@router.post("/getAverageRating")
async def get_average_rating(payload: AverageRatingRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        if not payload.course_id:
            raise ValidationFailed("Course ID is required.")
        average = await service.average_rating(db, payload.course_id)
        return {"success": True, "message": "Average rating fetched successfully", "average_rating": average}
    except HTTPException:
        raise
    except Exception:
        logger.exception("getAverageRating failed")
        raise HTTPException(status_code=500, detail="Failed to retrieve the rating for the course.")


@router.get("/getReviews")
async def get_reviews(db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        reviews = await service.list_all_ratings(db)
        return {"success": True, "message": "All reviews fetched successfully", "data": reviews}
    except HTTPException:
        raise
    except Exception:
        logger.exception("getReviews failed")
        raise HTTPException(status_code=500, detail="Failed to retrieve the rating and review for the course.")
