"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Request bodies use the camelCase keys of the public API (``fullName``,
``newPassword``); snake_case names are accepted as well.
"""

import re
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field

from src.domain.models import AccountResult

_NAME = re.compile(r"^[a-zA-Z ]+$")
_USERNAME = re.compile(r"^[a-zA-Z0-9_.]+$")
_DIGITS = re.compile(r"^[0-9]+$")
_PASSWORD = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,20}$"
)


def _full_name(value: str) -> str:
    if len(value) < 3:
        raise ValueError("Name must be atleast 3 characters long")
    if len(value) > 20:
        raise ValueError("Name must not exceed 20 characters")
    if not _NAME.match(value):
        raise ValueError("Name must contain only alphabets and spaces")
    return value


def _username(value: str) -> str:
    if len(value) < 3:
        raise ValueError("Username must be atleast 3 characters long")
    if len(value) > 20:
        raise ValueError("Username must not exceed 20 characters")
    if not _USERNAME.match(value):
        raise ValueError("Username must not contain special characters")
    return value


def _contact(value: str) -> str:
    if len(value) != 10:
        raise ValueError("Contact must be 10 digits long")
    if not _DIGITS.match(value):
        raise ValueError("Contact must contain only digits")
    return value


def _password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be atleast 8 characters long")
    if len(value) > 20:
        raise ValueError("Password must not exceed 20 characters")
    if not _PASSWORD.match(value):
        raise ValueError(
            "Password must contain atleast 1 uppercase, 1 lowercase, 1 digit and 1 special character"
        )
    return value


def _otp(value: str) -> str:
    if len(value) != 6:
        raise ValueError("Verification code must be 6 characters long")
    if not _DIGITS.match(value):
        raise ValueError("Verification code must contain only digits")
    return value


def _bio(value: str) -> str:
    if len(value) < 5:
        raise ValueError("Bio must be atleast 5 characters long")
    if len(value) > 500:
        raise ValueError("Bio must not exceed 500 characters")
    return value


FullName = Annotated[str, AfterValidator(_full_name)]
Username = Annotated[str, AfterValidator(_username)]
Contact = Annotated[str, AfterValidator(_contact)]
Password = Annotated[str, AfterValidator(_password)]
Otp = Annotated[str, AfterValidator(_otp)]
Bio = Annotated[str, AfterValidator(_bio)]


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class SignUpRequest(_Request):
    """Request model for account registration (all roles)."""

    full_name: FullName = Field(..., alias="fullName")
    email: EmailStr
    password: Password
    contact: Contact
    role: str | None = Field(None, description="admin, seller or buyer")
    username: Username | None = Field(None, description="Required for buyers")
    terms: bool = Field(False, description="Buyers must accept the terms and conditions")


class VerifyRegistrationRequest(_Request):
    """Registration OTP; buyers identify by username, other roles by email."""

    otp: Otp
    username: Username | None = None
    email: EmailStr | None = None


class EmailRequest(_Request):
    """Request model carrying only an email (resend OTP, forgot password)."""

    email: EmailStr


class LoginRequest(_Request):
    """Request model for login by email or the role's secondary identifier."""

    identifier: str = Field(..., min_length=3)
    password: Password
    role: str | None = None


class VerifyResetRequest(_Request):
    """Request model for checking a password-reset OTP."""

    email: EmailStr
    otp: Otp


class ResetPasswordRequest(_Request):
    """Request model for setting a new password."""

    email: EmailStr
    new_password: Password = Field(..., alias="newPassword")
    otp: Otp


class UpdateProfileRequest(_Request):
    """Request model for profile detail changes; omitted fields are unchanged."""

    full_name: FullName | None = Field(None, alias="fullName")
    email: EmailStr | None = None
    contact: Contact | None = None
    username: Username | None = None
    bio: Bio | None = None


class BaseUserResponse(BaseModel):
    """Identity part of a profile."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    email: str
    role: str
    is_verified: bool = Field(..., alias="isVerified")
    is_permanently_banned: bool = Field(..., alias="isPermanentlyBanned")


class ProfileResponse(BaseModel):
    """Sanitized profile, never carrying password hash or OTP fields."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    base_user_id: str = Field(..., alias="baseUserId")
    full_name: str | None = Field(None, alias="fullName")
    username: str | None = None
    contact: str | None = None
    bio: str | None = None
    terms: bool | None = None
    profile_picture_url: str | None = Field(None, alias="profilePictureUrl")
    seller_status: str | None = Field(None, alias="sellerStatus")
    base_user: BaseUserResponse = Field(..., alias="baseUser")


class AccountResponse(BaseModel):
    """Uniform success envelope."""

    success: bool = True
    message: str
    token: str | None = None
    user: ProfileResponse | None = None

    @classmethod
    def from_result(cls, result: AccountResult) -> "AccountResponse":
        user: Any = result.user.to_dict() if result.user else None
        return cls(
            success=result.success,
            message=result.message,
            token=result.token,
            user=ProfileResponse.model_validate(user) if user else None,
        )


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    success: bool = False
    message: str
