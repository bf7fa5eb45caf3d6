from typing import Optional

from pydantic import BaseModel

from app.auth.permissions import AccountType

# Fields are optional so missing values produce a declared failure message
# instead of a schema error.


class SendOtpRequest(BaseModel):
    email: Optional[str] = None


class SignUpRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None
    account_type: AccountType = AccountType.STUDENT
    contact_number: Optional[str] = None
    otp: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_new_password: Optional[str] = None


class ResetPasswordTokenRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None
