from datetime import datetime, timedelta
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt

from app.core.errors import Unauthorized

ALGORITHM = "HS256"
TOKEN_COOKIE = "token"


def issue_token(user: dict, secret: str, expires_days: int = 30) -> str:
    """Sign a bearer token carrying the caller's identity and role"""
    payload = {
        "email": user["email"],
        "id": user["user_id"],
        "role": user["account_type"],
        "exp": datetime.utcnow() + timedelta(days=expires_days),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_token(token: Optional[str], secret: str) -> dict:
    if not token:
        raise Unauthorized("Authentication required. Please login to access this resource.")
    try:
        # Checks signature and expiry
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        raise Unauthorized("Invalid or expired token. Please login again.")


async def extract_token(request: Request) -> Optional[str]:
    """Bearer header first, then the token cookie, then a token field in a JSON body"""
    authorization = request.headers.get("authorization")
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token:
            return token

    cookie_token = request.cookies.get(TOKEN_COOKIE)
    if cookie_token:
        return cookie_token

    if "application/json" in request.headers.get("content-type", ""):
        try:
            body = await request.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("token"):
            return str(body["token"])

    return None
