"""
auth/token_store.py -- Refresh token store: persistence for opaque refresh tokens.

Pattern: Repository + Data Mapper (same as auth/store.py). RefreshTokenStore
exclusively owns refresh_tokens rows; the session manager reads and mutates
them only through these methods.

Every method is a single statement on its own connection, so each call is
atomic at the storage layer. The store does no locking of its own.

Lookup contract:
  find_active_by_user() and find_by_value() skip revoked rows but DO return
  expired ones. Deciding what an expired row means is the session manager's
  job (rotate on login, reject on refresh).

  revoke() matches on the value alone, so it flips already-revoked and expired
  rows too. It only returns None when no row with that value exists.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.db import from_iso, make_engine, refresh_tokens, storage_errors, to_iso, utcnow
from auth.errors import DuplicateToken
from auth.models import RefreshToken
from core.config import get_settings


class RefreshTokenStore:
    """Repository for RefreshToken entities."""

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)

    def find_active_by_user(self, user_id: int) -> RefreshToken | None:
        """Return a non-revoked token owned by user_id, expired or not.

        If concurrent first logins left more than one row, the first one the
        query returns wins (oldest by id).
        """
        with storage_errors(), self.engine.connect() as conn:
            row = conn.execute(
                refresh_tokens.select()
                .where((refresh_tokens.c.user_id == user_id) & (refresh_tokens.c.revoked == 0))
                .order_by(refresh_tokens.c.id)
                .limit(1)
            ).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def find_by_value(self, token: str) -> RefreshToken | None:
        """Look up a non-revoked token by its value. O(1) via UNIQUE index."""
        with storage_errors(), self.engine.connect() as conn:
            row = conn.execute(
                refresh_tokens.select().where((refresh_tokens.c.token == token) & (refresh_tokens.c.revoked == 0))
            ).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def create(self, token: str, user_id: int, expiry_date: datetime) -> RefreshToken:
        """Insert a new token and return the stored record.

        Raises DuplicateToken if the value already exists.
        """
        record = RefreshToken(token=token, user_id=user_id, expiry_date=expiry_date, created_at=utcnow())
        with storage_errors():
            try:
                with self.engine.connect() as conn:
                    result = conn.execute(
                        refresh_tokens.insert().values(
                            token=record.token,
                            user_id=record.user_id,
                            expiry_date=to_iso(record.expiry_date),
                            revoked=0,
                            created_at=to_iso(record.created_at),
                        )
                    )
                    conn.commit()
            except IntegrityError as exc:
                raise DuplicateToken() from exc
        record.id = result.inserted_primary_key[0]
        return record

    def delete(self, record_id: int) -> bool:
        """Remove a token row. Returns True if a row was deleted."""
        with storage_errors(), self.engine.connect() as conn:
            result = conn.execute(refresh_tokens.delete().where(refresh_tokens.c.id == record_id))
            conn.commit()
        return result.rowcount > 0

    def revoke(self, token: str) -> RefreshToken | None:
        """Mark the token with this value revoked and return the updated record.

        Returns None (and changes nothing) if no row has this value.
        """
        with storage_errors(), self.engine.connect() as conn:
            result = conn.execute(refresh_tokens.update().where(refresh_tokens.c.token == token).values(revoked=1))
            conn.commit()
            if result.rowcount == 0:
                return None
            row = conn.execute(refresh_tokens.select().where(refresh_tokens.c.token == token)).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_refresh_token(row) -> RefreshToken:
    return RefreshToken(
        id=row.id,
        token=row.token,
        user_id=row.user_id,
        expiry_date=from_iso(row.expiry_date),
        revoked=bool(row.revoked),
        created_at=from_iso(row.created_at),
    )
