"""
auth/errors.py -- Exception taxonomy for the credential and session core.

Every failure the core can produce is an AuthError subclass with a stable
machine-readable code. Stores and the session manager raise these; the API
layer maps them onto HTTP status codes in a single exception handler.

Authentication failures are deliberately coarse: InvalidCredential is raised
for both "no such email" and "wrong password" so callers cannot learn which
emails are registered.

Layer rule: no imports from api/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all credential and session errors."""

    code = "auth_error"
    message = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Missing or malformed input. User-correctable."""

    code = "validation_error"
    message = "All fields are required."


class DuplicateCredential(AuthError):
    """Username or email already belongs to another user."""

    code = "duplicate_credential"
    message = "User already exists."


class DuplicateToken(AuthError):
    """A refresh token with this value already exists."""

    code = "duplicate_token"
    message = "Refresh token already exists."


class InvalidCredential(AuthError):
    code = "invalid_credentials"
    message = "Invalid credentials."


class InvalidToken(AuthError):
    code = "invalid_token"
    message = "Invalid refresh token."


class MissingToken(AuthError):
    code = "missing_token"
    message = "Refresh token required."


class TokenExpired(AuthError):
    code = "token_expired"
    message = "Refresh token expired."


class NotFound(AuthError):
    code = "not_found"
    message = "Not found."


class StorageError(AuthError):
    """The database failed. Not recoverable by the core; never retried."""

    code = "storage_error"
    message = "Storage unavailable."
