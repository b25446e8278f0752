"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Access tokens arrive as "Authorization: Bearer <token>". Verification is
stateless: the TokenIssuer checks signature and expiry, and the user id is
taken from the claims without touching the database. Routes that need the
full user record look it up through the SessionManager.

try_get_current_user_id() is the soft variant (returns None on failure).
get_current_user_id() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: auth/dependencies.py may import from fastapi (for Request and
HTTPException) because this module is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.session import SessionManager
from auth.tokens import TokenIssuer


def get_session_manager(request: Request) -> SessionManager:
    """Return the SessionManager wired into app.state by the lifespan."""
    return request.app.state.session_manager


def try_get_current_user_id(request: Request) -> int | None:
    """Return the user id from a valid Bearer access token, or None."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    if not token:
        return None
    issuer: TokenIssuer = request.app.state.token_issuer
    payload = issuer.decode_access_token(token)
    if payload is None:
        return None
    return payload["id"]


def get_current_user_id(request: Request) -> int:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user_id: int = Depends(get_current_user_id)): ...
    """
    user_id = try_get_current_user_id(request)
    if user_id is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user_id
