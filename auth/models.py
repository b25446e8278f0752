"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; stores and the session manager do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

DEFAULT_ROLES = ("USER",)


@dataclass
class User:
    """A registered identity.

    hashed_password is the bcrypt hash; the plaintext never reaches this
    object. API responses are built from the other fields only.

    login_count and last_login are login statistics maintained by
    UserStore.record_login(); verification alone never touches them.
    """

    username: str
    email: str
    hashed_password: str
    roles: list[str] = field(default_factory=lambda: list(DEFAULT_ROLES))
    id: int | None = None
    login_count: int = 0
    last_login: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class RefreshToken:
    """A long-lived opaque secret used only to mint new access tokens.

    user_id is a plain reference resolved through UserStore on demand -- the
    record never holds a live User. Once revoked is True the value can never
    become usable again; a fresh login is required.
    """

    token: str
    user_id: int
    expiry_date: datetime
    revoked: bool = False
    id: int | None = None
    created_at: datetime | None = None
