"""
Media storage boundary
Thumbnails and lecture videos go to Cloudinary through its SDK
"""

import logging
from dataclasses import dataclass
from typing import Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from app.catalog.durations import round_half_up
from app.core.errors import ExternalServiceFailure

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    secure_url: str
    resource_type: str = "image"
    duration: Optional[float] = None


class MediaUploader:
    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str):
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )
        self.folder = folder

    async def upload(self, file: UploadFile) -> UploadResult:
        content = await file.read()

        try:
            # The SDK call is blocking
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                content,
                folder=self.folder,
                resource_type="auto",
            )
        except CloudinaryError as e:
            logger.error("Upload of %s to media storage failed: %s", file.filename, e)
            raise ExternalServiceFailure("File upload failed. Please try again later.")

        logger.info(
            "Uploaded %s asset (format=%s, duration=%s)",
            result.get("resource_type"), result.get("format"), result.get("duration"),
        )
        return UploadResult(
            secure_url=result["secure_url"],
            resource_type=result.get("resource_type", "image"),
            duration=result.get("duration"),
        )


def resolve_video_duration(upload: UploadResult, supplied: Optional[str]) -> str:
    """
    Detected duration (rounded to whole seconds) wins, then the caller's value,
    then "0"
    """
    if upload.resource_type == "video" and upload.duration:
        return str(round_half_up(upload.duration))
    if supplied and str(supplied).strip() not in ("", "0"):
        return str(supplied).strip()
    return "0"


async def upload_or_fail(uploader: Optional[MediaUploader], file: UploadFile) -> UploadResult:
    if uploader is None:
        raise ExternalServiceFailure("Media storage is not configured.")
    return await uploader.upload(file)
