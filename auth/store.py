"""
auth/store.py -- Credential store: SQLAlchemy Core persistence for users.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. The session manager and routes never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Only bcrypt hashes are written. register() hashes before the INSERT, so a
  row never exists with a plaintext or empty password column.

  verify() always runs bcrypt, against a dummy hash when the email is unknown,
  so response time does not reveal whether an email is registered. Unknown
  email and wrong password raise the same InvalidCredential.

Uniqueness of username and email is enforced by UNIQUE constraints. The
pre-checks in register()/update_profile() give a clean error on the common
path; IntegrityError still covers the race where two requests pass the
pre-check together.
"""

from __future__ import annotations

import json

from sqlalchemy import or_, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.db import from_iso, make_engine, storage_errors, to_iso, users, utcnow
from auth.errors import DuplicateCredential, InvalidCredential, NotFound, ValidationError
from auth.models import DEFAULT_ROLES, User
from auth.passwords import check_password_length, dummy_hash, hash_password, verify_password
from core.config import get_settings

# Matches the String(255) columns in auth/db.py.
MAX_FIELD_LENGTH = 255


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _check_field_length(**fields: str | None) -> None:
    for name, value in fields.items():
        if value is not None and len(value) > MAX_FIELD_LENGTH:
            raise ValidationError(f"{name.capitalize()} must be at most {MAX_FIELD_LENGTH} characters.")


class UserStore:
    """Repository for User entities and password verification."""

    def __init__(self, db_url: str | None = None, bcrypt_rounds: int | None = None) -> None:
        settings = get_settings()
        self.engine: Engine = make_engine(db_url or settings.database_url)
        self.bcrypt_rounds = bcrypt_rounds or settings.bcrypt_rounds

    # ------------------------------------------------------------------
    # Registration and verification
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str) -> int:
        """Create a user and return its database ID.

        Raises ValidationError if any field is empty, DuplicateCredential if
        the username or email is taken. The hash is never returned.
        """
        if _is_blank(username) or _is_blank(email) or not password:
            raise ValidationError()
        _check_field_length(username=username, email=email)
        check_password_length(password)
        if self._credential_taken(username, email):
            raise DuplicateCredential()

        hashed = hash_password(password, rounds=self.bcrypt_rounds)
        now = to_iso(utcnow())
        with storage_errors():
            try:
                with self.engine.connect() as conn:
                    result = conn.execute(
                        users.insert().values(
                            username=username,
                            email=email,
                            hashed_password=hashed,
                            roles=json.dumps(list(DEFAULT_ROLES)),
                            login_count=0,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    conn.commit()
            except IntegrityError as exc:
                raise DuplicateCredential() from exc
        return result.inserted_primary_key[0]

    def verify(self, email: str, password: str) -> User:
        """Return the User whose email and password match, else raise InvalidCredential."""
        user = self.get_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return early before running bcrypt
            verify_password(password, dummy_hash(self.bcrypt_rounds))
            raise InvalidCredential()
        if not verify_password(password, user.hashed_password):
            raise InvalidCredential()
        return user

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with storage_errors(), self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with storage_errors(), self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def _credential_taken(self, username: str, email: str) -> bool:
        with storage_errors(), self.engine.connect() as conn:
            row = conn.execute(
                select(users.c.id).where(or_(users.c.username == username, users.c.email == email)).limit(1)
            ).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_profile(self, user_id: int, username: str | None = None, email: str | None = None) -> User:
        """Change the supplied fields of a user and return the updated record.

        None means "leave unchanged". An empty string is a ValidationError.
        Raises NotFound if the user does not exist, DuplicateCredential if the
        new email or username belongs to a different user.
        """
        if (username is not None and _is_blank(username)) or (email is not None and _is_blank(email)):
            raise ValidationError("Fields cannot be empty.")
        _check_field_length(username=username, email=email)
        if self.get_by_id(user_id) is None:
            raise NotFound("User not found.")
        if email is not None:
            owner = self.get_by_email(email)
            if owner is not None and owner.id != user_id:
                raise DuplicateCredential("Email already exists.")

        fields = {name: value for name, value in (("username", username), ("email", email)) if value is not None}
        if fields:
            fields["updated_at"] = to_iso(utcnow())
            with storage_errors():
                try:
                    with self.engine.connect() as conn:
                        result = conn.execute(users.update().where(users.c.id == user_id).values(**fields))
                        conn.commit()
                except IntegrityError as exc:
                    raise DuplicateCredential("Username or email already exists.") from exc
            if result.rowcount == 0:
                raise NotFound("User not found.")

        updated = self.get_by_id(user_id)
        if updated is None:
            raise NotFound("User not found.")
        return updated

    def record_login(self, user_id: int) -> User:
        """Increment login_count and stamp last_login in one atomic UPDATE.

        The increment is computed by the database (login_count + 1), so
        concurrent logins never lose a count.
        """
        now = to_iso(utcnow())
        with storage_errors(), self.engine.connect() as conn:
            result = conn.execute(
                users.update()
                .where(users.c.id == user_id)
                .values(login_count=users.c.login_count + 1, last_login=now, updated_at=now)
            )
            conn.commit()
        if result.rowcount == 0:
            raise NotFound("User not found.")
        updated = self.get_by_id(user_id)
        if updated is None:
            raise NotFound("User not found.")
        return updated

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with storage_errors(), self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        roles=json.loads(row.roles) if row.roles else list(DEFAULT_ROLES),
        login_count=row.login_count or 0,
        last_login=from_iso(row.last_login),
        created_at=from_iso(row.created_at),
        updated_at=from_iso(row.updated_at),
    )
