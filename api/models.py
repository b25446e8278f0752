"""
API request and response models for Gatekeeper REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

JSON field names are camelCase (accessToken, refreshToken, loginCount, ...)
because existing clients read them directly. Python attributes stay
snake_case; the alias generator does the translation both ways.

Request fields are optional on purpose: an absent field must reach the
session manager so it can answer with ValidationError / MissingToken and the
documented status code, rather than a generic 422 from body validation.
Length limits are enforced by UserStore for the same reason.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from auth.models import User


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(_CamelModel):
    """Request body for POST /api/auth/register."""

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(_CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshTokenRequest(_CamelModel):
    """Request body for POST /api/auth/refresh and POST /api/auth/logout."""

    refresh_token: Optional[str] = None


class ProfileUpdate(_CamelModel):
    """Request body for PUT /api/auth/profile. Omitted fields stay unchanged."""

    username: Optional[str] = None
    email: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(_CamelModel):
    msg: str


class LoginResponse(_CamelModel):
    msg: str = "Login successful"
    access_token: str
    refresh_token: str


class RefreshResponse(_CamelModel):
    msg: str = "Token refreshed successfully"
    access_token: str


class UserResponse(_CamelModel):
    """Public view of a user. The password hash is never part of it."""

    id: int
    username: str
    email: str
    roles: list[str]
    login_count: int
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> UserResponse:
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            roles=list(user.roles),
            login_count=user.login_count,
            last_login=user.last_login,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class ProfileResponse(_CamelModel):
    user: UserResponse


class ProfileUpdatedResponse(_CamelModel):
    msg: str = "Profile updated successfully"
    user: UserResponse


class ErrorDetail(BaseModel):
    """Structured error information returned on all 4xx/5xx responses."""

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str]
