"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _user_to_values are the mappers.
Route, guard and flow code never touches SQL directly.

Validation: create() always validates; save() validates unless
skip_validation=True. Reset-token bookkeeping saves skip validation because
only the token columns changed.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Reset tokens are stored as SHA-256 digests (see auth/passwords.py).

Timestamps are stored as fixed-width ISO 8601 UTC strings.

Layer rule: no imports from api/. Import from core/ is not needed here.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import ValidationError
from auth.models import DEFAULT_ROLE, ROLES, User, validate_password
from auth.passwords import hash_password

logger = logging.getLogger("tourguard.store")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_NAME_MAX_LENGTH = 100

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default=DEFAULT_ROLE),
    Column("password_changed_at", String(32)),
    Column("reset_token_hash", String(64), index=True),
    Column("reset_token_expires_at", String(32)),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_profile(name: str | None, email: str | None, role: str | None) -> None:
    if not name or not name.strip():
        raise ValidationError("Please tell us your name.")
    if len(name) > _NAME_MAX_LENGTH:
        raise ValidationError(f"Name must be at most {_NAME_MAX_LENGTH} characters.")
    if not email or not _EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email.")
    if role not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}.")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user = store.create({"name": "Ada", "email": "ada@example.com",
                             "password": "secret1", "password_confirm": "secret1"})
        store.find_by_email("ada@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, fields: dict) -> User:
        """Validate signup fields, hash the password and insert the user.

        Accepted keys: name, email, role (optional), password, password_confirm.
        Emails are stored trimmed and lowercased.

        Raises ValidationError on bad input or an already registered email.
        """
        name = (fields.get("name") or "").strip()
        email = (fields.get("email") or "").strip().lower()
        role = fields.get("role") or DEFAULT_ROLE
        _validate_profile(name, email, role)
        validate_password(fields.get("password") or "", fields.get("password_confirm") or "")

        user = User(
            name=name,
            email=email,
            role=role,
            hashed_password=hash_password(fields["password"]),
            created_at=_now(),
        )
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.insert().values(**_user_to_values(user)))
        except IntegrityError as exc:
            raise ValidationError("This email is already registered.") from exc
        user.id = result.inserted_primary_key[0]
        logger.info("Created user %d (role=%s)", user.id, user.role)
        return user

    def save(self, user: User, skip_validation: bool = False) -> User:
        """Persist every mutable field of an existing user.

        skip_validation=True bypasses profile validation -- used when only the
        reset-token columns changed.
        """
        if user.id is None:
            raise ValueError("save() requires a user that has already been created")
        if not skip_validation:
            _validate_profile(user.name, user.email, user.role)
        values = _user_to_values(user)
        values.pop("created_at")
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user.id).values(**values))
        except IntegrityError as exc:
            raise ValidationError("This email is already registered.") from exc
        if result.rowcount == 0:
            raise ValueError(f"User {user.id} does not exist")
        return user

    def consume_reset_token(self, token_hash: str, now: datetime | None = None) -> User | None:
        """Atomically claim a reset token.

        Returns the user with the token fields already cleared in storage, or
        None if no user holds this digest or it has expired. The clearing
        UPDATE is conditional on the digest, so of two concurrent callers only
        one gets the user back.
        """
        now = now or _now()
        with self.engine.begin() as conn:
            row = conn.execute(_users.select().where(_users.c.reset_token_hash == token_hash)).fetchone()
            if row is None:
                return None
            user = _row_to_user(row)
            if user.reset_token_expires_at is None or user.reset_token_expires_at <= now:
                return None
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user.id) & (_users.c.reset_token_hash == token_hash))
                .values(reset_token_hash=None, reset_token_expires_at=None)
            )
            if result.rowcount == 0:
                return None
        user.clear_reset_token()
        return user

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by id. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _user_to_values(user: User) -> dict:
    return {
        "name": user.name,
        "email": user.email,
        "hashed_password": user.hashed_password,
        "role": user.role,
        "password_changed_at": _to_iso(user.password_changed_at),
        "reset_token_hash": user.reset_token_hash,
        "reset_token_expires_at": _to_iso(user.reset_token_expires_at),
        "created_at": _to_iso(user.created_at),
    }


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        password_changed_at=_from_iso(row.password_changed_at),
        reset_token_hash=row.reset_token_hash,
        reset_token_expires_at=_from_iso(row.reset_token_expires_at),
        created_at=_from_iso(row.created_at),
    )
