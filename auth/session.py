"""
auth/session.py -- Session manager: login, refresh and logout orchestration.

This is the core state machine. Per user, the refresh token relationship is in
one of four states:

  NONE     -- no non-revoked token row exists
  ACTIVE   -- a non-revoked row whose expiry_date is still in the future
  EXPIRED  -- a non-revoked row past its expiry_date; resolved lazily the next
              time login or refresh touches it
  REVOKED  -- terminal for that token value; such rows are invisible to every
              lookup, so from the user's point of view they look like NONE

Rotation policy on login is an explicit table (ROTATION_POLICY) so it can be
read and tested without a database:

  NONE    -> ISSUE    mint and persist a new token
  ACTIVE  -> REUSE    return the existing token unchanged
  EXPIRED -> REPLACE  delete the expired row, then mint and persist a new one

The table treats a token as expired once expiry_date <= now. refresh() is
more lenient and only rejects a token strictly past its expiry_date, so at
the exact expiry instant login rotates while refresh still succeeds.

Reuse (not rotation) while a token is active keeps other clients of the same
account working across logins.

Ordering: login statistics are committed before any token work starts. The
two are not wrapped in one transaction; a crash in between leaves the count
incremented with no tokens handed out.

Known gap: two concurrent first logins for the same user can both see NONE
and both insert a token. find_active_by_user() then returns the oldest row.
There is no storage constraint preventing this.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from auth.errors import InvalidToken, MissingToken, NotFound, TokenExpired, ValidationError
from auth.models import RefreshToken, User
from auth.store import UserStore
from auth.token_store import RefreshTokenStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("gatekeeper.auth.session")


class TokenState(enum.Enum):
    NONE = "none"
    ACTIVE = "active"
    EXPIRED = "expired"


class RotationAction(enum.Enum):
    ISSUE = "issue"
    REUSE = "reuse"
    REPLACE = "replace"


ROTATION_POLICY: dict[TokenState, RotationAction] = {
    TokenState.NONE: RotationAction.ISSUE,
    TokenState.ACTIVE: RotationAction.REUSE,
    TokenState.EXPIRED: RotationAction.REPLACE,
}


def token_state(record: RefreshToken | None, now: datetime) -> TokenState:
    """Classify a non-revoked refresh token record at time now."""
    if record is None:
        return TokenState.NONE
    if record.expiry_date <= now:
        return TokenState.EXPIRED
    return TokenState.ACTIVE


@dataclass
class LoginResult:
    access_token: str
    refresh_token: str
    user: User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """Coordinates UserStore, RefreshTokenStore and TokenIssuer.

    Holds no mutable state of its own; every durable change goes through one
    of the stores, so instances are safe to share across request threads.
    """

    def __init__(
        self,
        users: UserStore,
        tokens: RefreshTokenStore,
        issuer: TokenIssuer,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._users = users
        self._tokens = tokens
        self._issuer = issuer
        self._clock = clock

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(self, username: str | None, email: str | None, password: str | None) -> int:
        user_id = self._users.register(username, email, password)
        logger.info("Registered user_id=%s", user_id)
        return user_id

    def login(self, email: str | None, password: str | None) -> LoginResult:
        """Verify credentials and return an access token plus a refresh token.

        Every call increments the user's login count, so login is not
        idempotent. The access token is always fresh; the refresh token
        follows ROTATION_POLICY.
        """
        if not email or not password:
            raise ValidationError()
        user = self._users.verify(email, password)
        user = self._users.record_login(user.id)
        logger.info("Login for user_id=%s (count=%d)", user.id, user.login_count)

        access_token = self._issuer.issue_access_token(user)
        refresh_token = self._resolve_refresh_token(user.id)
        return LoginResult(access_token=access_token, refresh_token=refresh_token, user=user)

    def _resolve_refresh_token(self, user_id: int) -> str:
        existing = self._tokens.find_active_by_user(user_id)
        state = token_state(existing, self._clock())
        action = ROTATION_POLICY[state]

        if action is RotationAction.REUSE:
            logger.info("Reusing active refresh token for user_id=%s", user_id)
            return existing.token
        if action is RotationAction.REPLACE:
            self._tokens.delete(existing.id)
            logger.info("Rotating expired refresh token for user_id=%s", user_id)
        return self._issue_refresh_token(user_id)

    def _issue_refresh_token(self, user_id: int) -> str:
        record = self._tokens.create(
            self._issuer.new_refresh_token_value(),
            user_id,
            self._issuer.refresh_expiry_from_now(),
        )
        logger.info("Issued refresh token id=%s for user_id=%s", record.id, user_id)
        return record.token

    # ------------------------------------------------------------------
    # Refresh and logout
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str | None) -> str:
        """Exchange a valid refresh token for a new access token.

        The refresh token itself is neither rotated nor extended. An expired
        token is deleted and rejected -- only login rotates expired tokens.
        """
        if not refresh_token:
            raise MissingToken()
        record = self._tokens.find_by_value(refresh_token)
        if record is None:
            raise InvalidToken()
        # Strictly past expiry; a token is still usable at its expiry instant.
        if record.expiry_date < self._clock():
            self._tokens.delete(record.id)
            logger.warning("Expired refresh token id=%s presented by user_id=%s", record.id, record.user_id)
            raise TokenExpired()

        user = self._users.get_by_id(record.user_id)
        if user is None:
            raise InvalidToken()
        return self._issuer.issue_access_token(user)

    def logout(self, refresh_token: str | None) -> None:
        """Revoke a refresh token permanently, whatever its current state."""
        if not refresh_token:
            raise MissingToken()
        record = self._tokens.revoke(refresh_token)
        if record is None:
            raise NotFound("Refresh token not found.")
        logger.info("Revoked refresh token id=%s for user_id=%s", record.id, record.user_id)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self, user_id: int) -> User:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found.")
        return user

    def update_profile(self, user_id: int, username: str | None = None, email: str | None = None) -> User:
        return self._users.update_profile(user_id, username=username, email=email)
