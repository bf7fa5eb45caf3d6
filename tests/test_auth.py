"""
Identity & access: OTP signup, login, token extraction order and role gating
"""
from datetime import datetime, timedelta

import pytest

from app.auth.tokens import issue_token
from conftest import PASSWORD, auth_headers, make_category, make_course, make_user

pytestmark = pytest.mark.anyio("asyncio")

API = "/api/v1"


async def test_signup_with_otp_then_login(client, db, mailer):
    resp = await client.post(f"{API}/auth/sendotp", json={"email": "new@example.com"})
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    otp_doc = await db.otps.find_one({"email": "new@example.com"})
    assert len(otp_doc["otp"]) == 6 and otp_doc["otp"].isdigit()
    # Verification mail carries the code
    assert mailer.sent[0]["to"] == "new@example.com"
    assert otp_doc["otp"] in mailer.sent[0]["html"]

    signup = await client.post(f"{API}/auth/signup", json={
        "first_name": "Meera",
        "last_name": "Iyer",
        "email": "new@example.com",
        "password": "pw-12345",
        "confirm_password": "pw-12345",
        "account_type": "Instructor",
        "otp": otp_doc["otp"],
    })
    assert signup.status_code == 200
    user = signup.json()["data"]
    assert user["account_type"] == "Instructor"
    assert "password" not in user
    assert user["image"].endswith("seed=MI")
    # Codes are single use
    assert await db.otps.find_one({"email": "new@example.com"}) is None

    login = await client.post(f"{API}/auth/login", json={"email": "new@example.com", "password": "pw-12345"})
    assert login.status_code == 200
    body = login.json()
    assert body["token"]
    assert body["user"]["email"] == "new@example.com"
    assert "token" in login.headers.get("set-cookie", "")


async def test_signup_rejects_wrong_otp(client, db):
    await db.otps.insert_one({"email": "x@example.com", "otp": "111111", "created_at": datetime.utcnow()})
    resp = await client.post(f"{API}/auth/signup", json={
        "first_name": "X", "last_name": "Y", "email": "x@example.com",
        "password": "a", "confirm_password": "a", "otp": "222222",
    })
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Invalid OTP. Please enter the correct verification code."}


async def test_signup_rejects_expired_otp(client, db):
    await db.otps.insert_one({
        "email": "late@example.com", "otp": "123456",
        "created_at": datetime.utcnow() - timedelta(minutes=6),
    })
    resp = await client.post(f"{API}/auth/signup", json={
        "first_name": "L", "last_name": "T", "email": "late@example.com",
        "password": "a", "confirm_password": "a", "otp": "123456",
    })
    assert resp.status_code == 400
    assert "expired" in resp.json()["message"]


async def test_sendotp_rejects_registered_email(client, db):
    user = await make_user(db)
    resp = await client.post(f"{API}/auth/sendotp", json={"email": user["email"]})
    assert resp.status_code == 409


async def test_login_failures(client, db):
    user = await make_user(db)

    missing = await client.post(f"{API}/auth/login", json={"email": user["email"]})
    assert missing.status_code == 400

    unknown = await client.post(f"{API}/auth/login", json={"email": "nobody@example.com", "password": "x"})
    assert unknown.status_code == 404

    wrong = await client.post(f"{API}/auth/login", json={"email": user["email"], "password": "nope"})
    assert wrong.status_code == 401


async def test_change_password_and_email_notice(client, db, settings, mailer):
    user = await make_user(db)
    resp = await client.post(
        f"{API}/auth/changepassword",
        json={"old_password": PASSWORD, "new_password": "fresh-1", "confirm_new_password": "fresh-1"},
        headers=auth_headers(user, settings),
    )
    assert resp.status_code == 200
    assert mailer.sent[-1]["subject"] == "Password Updated Successfully"

    login = await client.post(f"{API}/auth/login", json={"email": user["email"], "password": "fresh-1"})
    assert login.status_code == 200


async def test_reset_password_flow(client, db, mailer):
    user = await make_user(db)
    resp = await client.post(f"{API}/auth/reset-password-token", json={"email": user["email"]})
    assert resp.status_code == 200

    stored = await db.users.find_one({"user_id": user["user_id"]})
    token = stored["reset_token"]
    assert f"http://frontend.test/update-password/{token}" in mailer.sent[-1]["html"]

    reset = await client.post(f"{API}/auth/reset-password", json={
        "token": token, "password": "brand-new", "confirm_password": "brand-new",
    })
    assert reset.status_code == 200

    stored = await db.users.find_one({"user_id": user["user_id"]})
    assert "reset_token" not in stored

    # Tokens are single use
    again = await client.post(f"{API}/auth/reset-password", json={
        "token": token, "password": "x", "confirm_password": "x",
    })
    assert again.status_code == 400


async def test_missing_token_is_unauthorized(client):
    resp = await client.get(f"{API}/profile/getUserDetails")
    assert resp.status_code == 401
    assert resp.json()["success"] is False


async def test_invalid_token_is_unauthorized(client):
    resp = await client.get(f"{API}/profile/getUserDetails", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


async def test_expired_token_is_unauthorized(client, db, settings):
    user = await make_user(db)
    token = issue_token(user, settings.jwt_secret, expires_days=-1)
    resp = await client.get(f"{API}/profile/getUserDetails", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_header_token_wins_over_cookie(client, db, settings):
    header_user = await make_user(db, first_name="Header")
    cookie_user = await make_user(db, first_name="Cookie")
    client.cookies.set("token", issue_token(cookie_user, settings.jwt_secret))

    resp = await client.get(f"{API}/profile/getUserDetails", headers=auth_headers(header_user, settings))
    assert resp.json()["data"]["first_name"] == "Header"

    cookie_only = await client.get(f"{API}/profile/getUserDetails")
    assert cookie_only.json()["data"]["first_name"] == "Cookie"


async def test_token_from_json_body(client, db, settings):
    instructor = await make_user(db, "Instructor")
    student = await make_user(db)
    course = await make_course(db, instructor, await make_category(db))

    resp = await client.post(
        f"{API}/course/getFullCourseDetails",
        json={"course_id": course["course_id"], "token": issue_token(student, settings.jwt_secret)},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["completed_videos"] == []


async def test_role_gating(client, db, settings):
    student = await make_user(db)
    admin = await make_user(db, "Admin")

    denied = await client.post(
        f"{API}/course/createCategory",
        json={"name": "Web", "description": "Web dev"},
        headers=auth_headers(student, settings),
    )
    assert denied.status_code == 403
    assert denied.json()["message"] == "Access denied. This feature is only available for admins."

    allowed = await client.post(
        f"{API}/course/createCategory",
        json={"name": "Web", "description": "Web dev"},
        headers=auth_headers(admin, settings),
    )
    assert allowed.status_code == 200
    assert allowed.json()["data"]["name"] == "Web"
