"""
API request and response models for tourguard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request fields default to empty values on purpose: field-level validation of
signup input belongs to UserStore (400 ValidationError), and an empty login
body must produce the same 401 as a wrong password.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=255)
    role: Optional[str] = Field(default=None, max_length=30)
    password: str = Field(default="", max_length=255)
    password_confirm: str = Field(default="", max_length=255, alias="passwordConfirm")


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/forgot-password."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(default="", max_length=255)


class ResetPasswordRequest(BaseModel):
    """Request body for PATCH /api/v1/auth/reset-password/{token}."""

    model_config = ConfigDict(populate_by_name=True)

    password: str = Field(default="", max_length=255)
    password_confirm: str = Field(default="", max_length=255, alias="passwordConfirm")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. Never includes the password hash or reset token."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, name=user.name, email=user.email, role=user.role)


class SignupResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "signedUp"
    token: str
    user: UserResponse


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "loggedIn"
    token: str


class TokenResponse(BaseModel):
    """Response for PATCH /api/v1/auth/reset-password/{token}."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    token: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    message: str


class UserDetailResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    user: UserResponse


class UserListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    results: int
    users: list[UserResponse]


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses.

    status is "fail" for client errors and "error" for server errors.
    """

    model_config = ConfigDict(frozen=True)

    status: str
    code: str
    message: str

    @classmethod
    def for_status(cls, status_code: int, code: str, message: str) -> "ErrorResponse":
        return cls(status="fail" if status_code < 500 else "error", code=code, message=message)


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
