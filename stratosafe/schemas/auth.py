from datetime import datetime

from pydantic import EmailStr, Field

from stratosafe.schemas.base import CamelModel


class RegisterIn(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class LoginIn(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserOut(CamelModel):
    # no password hash, MFA secret or backup codes, ever
    id: str
    email: str
    first_name: str
    last_name: str
    mfa_enabled: bool
    created_at: datetime | None = None


class LoginOut(CamelModel):
    token: str
    user: UserOut


class MfaRequiredOut(CamelModel):
    requires_mfa: bool = True
    email: str


class PasswordChangeIn(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


class SuccessOut(CamelModel):
    success: bool = True
    message: str
