"""
Pytest configuration for API tests.

The app runs against in-memory fakes; no MongoDB, SMTP relay, payment
gateway or media storage is contacted.
"""
from datetime import datetime

import httpx
import pytest
from httpx import ASGITransport

from app.auth.service import hash_password
from app.auth.tokens import issue_token
from app.core.config import Settings
from app.core.database import create_indexes, generate_id
from app.main import create_app
from fakes import FakeAssistant, FakeDatabase, FakeMailer, FakeRazorpayClient, FakeUploader

PASSWORD = "s3cret-pass"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    return Settings(
        jwt_secret="test-secret",
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret="k",
        frontend_url="http://frontend.test",
        cors_origins=["http://frontend.test"],
        log_level="WARNING",
    )


@pytest.fixture
async def db():
    database = FakeDatabase()
    await create_indexes(database)
    return database


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def payment_client():
    return FakeRazorpayClient()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def assistant():
    return FakeAssistant()


@pytest.fixture
def app(settings, db, mailer, payment_client, uploader, assistant):
    application = create_app(settings)
    # Startup is not run under ASGITransport; wire the handles directly
    application.state.db = db
    application.state.mailer = mailer
    application.state.payment_client = payment_client
    application.state.uploader = uploader
    application.state.assistant = assistant
    return application


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


# ==================== SEED HELPERS ====================

async def make_user(db, account_type="Student", email=None, first_name="Asha", last_name="Rao"):
    profile_id = generate_id("PRF")
    await db.profiles.insert_one({"profile_id": profile_id, "gender": None, "about": None,
                                  "date_of_birth": None, "contact_number": None})
    user = {
        "user_id": generate_id("USR"),
        "first_name": first_name,
        "last_name": last_name,
        "email": email or f"{generate_id('mail').lower()}@example.com",
        "password": hash_password(PASSWORD),
        "account_type": account_type,
        "profile_id": profile_id,
        "courses": [],
        "course_progress": [],
        "image": None,
        "created_at": datetime.utcnow(),
    }
    await db.users.insert_one(user)
    return user


async def make_category(db, name=None):
    category = {
        "category_id": generate_id("CAT"),
        "name": name or generate_id("Category"),
        "description": "Things to learn",
        "courses": [],
    }
    await db.categories.insert_one(category)
    return category


async def make_course(db, instructor, category, lectures=(3, 2), price=499, status="Published",
                      durations=None, name="Python Basics"):
    """Course with one section per entry of `lectures`, each holding that many subsections"""
    section_ids = []
    subsection_ids = []
    for count in lectures:
        sub_ids = []
        for i in range(count):
            sub_id = generate_id("SUB")
            duration = durations.pop(0) if durations else "60"
            await db.subsections.insert_one({
                "subsection_id": sub_id,
                "title": f"Lecture {i + 1}",
                "description": "",
                "time_duration": duration,
                "video_url": "https://media.test/v.mp4",
            })
            sub_ids.append(sub_id)
        section_id = generate_id("SEC")
        await db.sections.insert_one({"section_id": section_id, "section_name": "Section", "subsections": sub_ids})
        section_ids.append(section_id)
        subsection_ids.extend(sub_ids)

    course = {
        "course_id": generate_id("COURSE"),
        "course_name": name,
        "course_description": "Learn Python",
        "what_you_will_learn": "Everything",
        "price": price,
        "thumbnail": None,
        "tag": ["python"],
        "instructions": ["Be curious"],
        "status": status,
        "instructor_id": instructor["user_id"],
        "category_id": category["category_id"],
        "course_content": section_ids,
        "ratings_and_reviews": [],
        "students_enrolled": [],
        "created_at": datetime.utcnow(),
    }
    await db.courses.insert_one(course)
    await db.users.update_one({"user_id": instructor["user_id"]}, {"$push": {"courses": course["course_id"]}})
    await db.categories.update_one({"category_id": category["category_id"]},
                                   {"$push": {"courses": course["course_id"]}})
    course["subsection_ids"] = subsection_ids
    return course


def auth_headers(user, settings):
    return {"Authorization": f"Bearer {issue_token(user, settings.jwt_secret)}"}
