import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.dependencies import get_db

router = APIRouter(tags=["System"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health(db: AsyncIOMotorDatabase = Depends(get_db)):
    """Liveness plus a database round trip"""
    record = {"timestamp": datetime.utcnow().isoformat(), "status": {"api": "UP"}}
    try:
        await db.command("ping")
        record["status"]["database"] = "UP"
    except Exception as e:
        logger.error("Database ping failed: %s", e)
        record["status"]["database"] = "DOWN"
        return JSONResponse(status_code=503, content={"success": False, "message": "Database unreachable", **record})

    return {"success": True, "message": "Service healthy", **record}
