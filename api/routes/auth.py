"""
api/routes/auth.py -- Registration, session and profile REST endpoints.

Routes:
  POST /api/auth/register  -- create an account; 201
  POST /api/auth/login     -- email + password; returns accessToken + refreshToken
  POST /api/auth/refresh   -- refreshToken -> new accessToken
  POST /api/auth/logout    -- revoke a refreshToken
  GET  /api/auth/profile   -- current user (requires Bearer access token)
  PUT  /api/auth/profile   -- update username/email (requires Bearer access token)

Handlers are plain `def` so FastAPI runs them in its thread pool; the stores
use blocking SQLAlchemy connections.

Errors raised by the session manager are AuthError subclasses and are turned
into status codes by the handler in api/main.py. The one exception is
MissingToken on logout, which is a 400 there rather than the 401 it is on
refresh.

Security:
  Cache-Control: no-store on every response that carries a token.
  Login failures are always the generic "invalid_credentials" error, whether
  the email is unknown or the password is wrong.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from api.models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    ProfileUpdate,
    ProfileUpdatedResponse,
    RefreshResponse,
    RefreshTokenRequest,
    RegisterRequest,
    UserResponse,
)
from auth.dependencies import get_current_user_id, get_session_manager
from auth.errors import MissingToken
from auth.session import SessionManager

# Auth policy:
# - POST /api/auth/register, /login, /refresh, /logout: public
# - GET  /api/auth/profile, PUT /api/auth/profile:      requires Bearer access token
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=MessageResponse, status_code=201)
def register(body: RegisterRequest, session: SessionManager = Depends(get_session_manager)) -> MessageResponse:
    """Create a new account. The password is hashed before it is stored."""
    session.register(body.username, body.email, body.password)
    return MessageResponse(msg="User registered successfully!")


@router.post("/auth/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    response: Response,
    session: SessionManager = Depends(get_session_manager),
) -> LoginResponse:
    """Authenticate with email and password.

    Returns a fresh access token every time. The refresh token is reused
    while the account's current one is still active.
    """
    result = session.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(access_token=result.access_token, refresh_token=result.refresh_token)


@router.post("/auth/refresh", response_model=RefreshResponse)
def refresh(
    response: Response,
    body: Optional[RefreshTokenRequest] = None,
    session: SessionManager = Depends(get_session_manager),
) -> RefreshResponse:
    """Exchange a refresh token for a new access token."""
    access_token = session.refresh(body.refresh_token if body else None)
    response.headers["Cache-Control"] = "no-store"
    return RefreshResponse(access_token=access_token)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(
    body: Optional[RefreshTokenRequest] = None,
    session: SessionManager = Depends(get_session_manager),
) -> MessageResponse:
    """Revoke a refresh token. A revoked token can never be used again."""
    try:
        session.logout(body.refresh_token if body else None)
    except MissingToken as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": exc.code, "message": exc.message},
        ) from exc
    return MessageResponse(msg="Logout successful")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=ProfileResponse)
def get_profile(
    user_id: int = Depends(get_current_user_id),
    session: SessionManager = Depends(get_session_manager),
) -> ProfileResponse:
    """Return the current user's profile, without the password hash."""
    user = session.get_profile(user_id)
    return ProfileResponse(user=UserResponse.from_user(user))


@router.put("/auth/profile", response_model=ProfileUpdatedResponse)
def update_profile(
    body: ProfileUpdate,
    user_id: int = Depends(get_current_user_id),
    session: SessionManager = Depends(get_session_manager),
) -> ProfileUpdatedResponse:
    """Change username and/or email. Omitted fields are left as they are."""
    user = session.update_profile(user_id, username=body.username, email=body.email)
    return ProfileUpdatedResponse(user=UserResponse.from_user(user))
