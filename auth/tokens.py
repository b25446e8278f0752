"""
auth/tokens.py -- Access token signing and refresh token generation.

Security design decisions:
  Access tokens: python-jose with HS256. Tokens are signed with SECRET_KEY and
       carry id, username, roles, iat and exp. They are stateless -- any holder
       of the secret can verify signature and expiry without a database round
       trip. decode_access_token() returns None on any failure; the route
       layer turns that into a 401.

  Refresh tokens: secrets.token_hex(64) gives 512 bits of entropy. The value
       is opaque: it carries no claims and is only ever looked up in the
       refresh token store, never decoded.

  Configuration: TokenIssuer never reads settings itself. The signing secret
       and lifetimes arrive in a TokenConfig built once at startup, so tests
       can construct issuers with their own secret and clock.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

if TYPE_CHECKING:
    from auth.models import User
    from core.config import Settings

logger = logging.getLogger("gatekeeper.auth.tokens")

_REFRESH_TOKEN_BYTES = 64


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenConfig:
    """Signing secret and token lifetimes, passed explicitly to TokenIssuer."""

    secret_key: str
    algorithm: str = "HS256"
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=7)

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            secret_key=settings.secret_key,
            access_token_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_token_ttl=timedelta(days=settings.refresh_token_expire_days),
        )


class TokenIssuer:
    """Mints signed access tokens and opaque refresh token values."""

    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] = _utcnow) -> None:
        self.config = config
        self._clock = clock

    def issue_access_token(self, user: User) -> str:
        """Encode a signed JWT with the user's identity and a short expiry."""
        now = self._clock()
        payload = {
            "id": user.id,
            "username": user.username,
            "roles": list(user.roles),
            "iat": now,
            "exp": now + self.config.access_token_ttl,
        }
        return jwt.encode(payload, self.config.secret_key, algorithm=self.config.algorithm)

    def decode_access_token(self, token: str) -> dict | None:
        """Verify signature and expiry. Returns the claims dict or None on any failure."""
        try:
            payload = jwt.decode(token, self.config.secret_key, algorithms=[self.config.algorithm])
        except JWTError as exc:
            logger.debug("Rejected access token: %s", exc)
            return None
        if "id" not in payload or "roles" not in payload:
            return None
        return payload

    def new_refresh_token_value(self) -> str:
        """Return a fresh 128-hex-character refresh token (512 bits of entropy)."""
        return secrets.token_hex(_REFRESH_TOKEN_BYTES)

    def refresh_expiry_from_now(self) -> datetime:
        return self._clock() + self.config.refresh_token_ttl
