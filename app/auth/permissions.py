from enum import Enum

from fastapi import Depends, Request

from app.auth.tokens import decode_token, extract_token
from app.core.dependencies import get_settings
from app.core.errors import Forbidden, Unauthorized


class AccountType(str, Enum):
    STUDENT = "Student"
    INSTRUCTOR = "Instructor"
    ADMIN = "Admin"


class UserContext:
    """
    Identity resolved from a verified bearer token
    """
    def __init__(self, claims: dict):
        self.user_id = claims.get("id")
        self.email = claims.get("email")
        self.role = claims.get("role")
        self.claims = claims


async def get_current_user(request: Request) -> UserContext:
    """
    Dependency: Validates the bearer token and returns the caller's context

    Raises:
        401: Missing, invalid or expired token
    """
    settings = get_settings(request)
    token = await extract_token(request)
    claims = decode_token(token, settings.jwt_secret)

    if not claims.get("id"):
        raise Unauthorized("Invalid token: missing user id")

    return UserContext(claims)


def require_role(role: AccountType):
    """Dependency factory: caller's role claim must equal `role`"""

    async def checker(user: UserContext = Depends(get_current_user)) -> UserContext:
        if user.role != role.value:
            raise Forbidden(
                f"Access denied. This feature is only available for {role.value.lower()}s."
            )
        return user

    return checker


require_student = require_role(AccountType.STUDENT)
require_instructor = require_role(AccountType.INSTRUCTOR)
require_admin = require_role(AccountType.ADMIN)
