import logging
from typing import Optional

import razorpay
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.ai.assistant import StudyAssistant
from app.ai.router import router as ai_router
from app.auth.router import router as auth_router
from app.catalog.router import router as catalog_router
from app.core.config import Settings, load_settings
from app.core.database import MongoManager, create_indexes
from app.enrollment.router import router as progress_router
from app.media.uploader import MediaUploader
from app.notifications.mailer import Mailer
from app.payments.router import router as payment_router
from app.profile.router import router as profile_router
from app.ratings.router import router as ratings_router
from app.system.health_router import router as health_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="EduElevate API")
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],  # Razorpay checkout reads response headers
    )

    @app.on_event("startup")
    async def startup_event():
        manager = MongoManager(settings.mongo_url, settings.mongo_db_name)
        app.state.mongo = manager
        app.state.db = await manager.connect()
        await create_indexes(app.state.db)

        if settings.mail_host:
            app.state.mailer = Mailer(
                settings.mail_host,
                settings.mail_port,
                settings.mail_user,
                settings.mail_pass,
                settings.mail_from,
            )
        else:
            logger.warning("MAIL_HOST not set, outgoing email is disabled")

        if settings.razorpay_key_id and settings.razorpay_key_secret:
            app.state.payment_client = razorpay.Client(
                auth=(settings.razorpay_key_id, settings.razorpay_key_secret)
            )

        if settings.cloudinary_cloud_name and settings.cloudinary_api_key and settings.cloudinary_api_secret:
            app.state.uploader = MediaUploader(
                settings.cloudinary_cloud_name,
                settings.cloudinary_api_key,
                settings.cloudinary_api_secret,
                settings.media_folder,
            )

        if settings.gemini_api_key:
            app.state.assistant = StudyAssistant(settings.gemini_api_key, settings.gemini_model)

    @app.on_event("shutdown")
    async def shutdown_event():
        manager = getattr(app.state, "mongo", None)
        if manager:
            await manager.disconnect()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field_name = ".".join(str(part) for part in first.get("loc", []) if part != "body")
        message = f"{field_name}: {first.get('msg')}" if field_name else "Invalid request"
        return JSONResponse(status_code=400, content={"success": False, "message": message})

    # ==================== ROUTER REGISTRATION ====================
    app.include_router(auth_router, prefix=f"{API_PREFIX}/auth")
    app.include_router(profile_router, prefix=f"{API_PREFIX}/profile")
    app.include_router(payment_router, prefix=f"{API_PREFIX}/payment")
    app.include_router(catalog_router, prefix=f"{API_PREFIX}/course")
    app.include_router(progress_router, prefix=f"{API_PREFIX}/course")
    app.include_router(ratings_router, prefix=f"{API_PREFIX}/course")
    app.include_router(ai_router, prefix=f"{API_PREFIX}/ai")
    app.include_router(health_router)
    # ============================================================

    return app


app = create_app()
