"""User and authentication schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from taskload.schemas.common import Pagination, UTCDateTime, UserSummary


class UserResponse(BaseModel):
    """Full user profile."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    first_name: str | None
    last_name: str | None
    profile_image: str | None
    role: str
    is_active: bool
    email_verified: bool
    last_login: UTCDateTime | None
    preferences: dict
    custom_fields: dict
    created_at: UTCDateTime


class UserListResponse(BaseModel):
    users: list[UserSummary]
    pagination: Pagination


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str | None = Field(None, max_length=50)
    last_name: str | None = Field(None, max_length=50)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return v.strip()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6, max_length=128)


class ProfileUpdate(BaseModel):
    first_name: str | None = Field(None, max_length=50)
    last_name: str | None = Field(None, max_length=50)
    profile_image: str | None = Field(None, max_length=500)
    preferences: dict | None = None
    custom_fields: dict | None = None


class AuthResponse(BaseModel):
    """Login/register/refresh result."""

    user: UserSummary
    token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
