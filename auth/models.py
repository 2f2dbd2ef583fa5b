"""
auth/models.py -- Domain dataclasses for authentication entities.

User carries the handful of operations the auth core needs from its record:
password comparison, reset-token issue/clear, password change and the
staleness check against a session token's issue time. Everything that
touches storage lives in auth/store.py.

All timestamps are timezone-aware UTC datetimes.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from auth.errors import ValidationError
from auth.passwords import digest_reset_token, generate_reset_token, hash_password, verify_password

ROLES: tuple[str, ...] = ("user", "guide", "lead-guide", "admin")
DEFAULT_ROLE = "user"

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 64


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_password(password: str, password_confirm: str) -> None:
    """Raise ValidationError unless the password is acceptable and confirmed."""
    if not password or len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters.")
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_LENGTH} characters.")
    if password != password_confirm:
        raise ValidationError("Passwords are not the same.")


@dataclass
class User:
    """A registered identity.

    hashed_password is never serialized into responses; api/models.py maps
    User to UserResponse explicitly.

    reset_token_hash holds the SHA-256 digest of the emailed reset token, not
    the token itself.
    """

    name: str
    email: str
    hashed_password: str
    role: str = DEFAULT_ROLE
    id: int | None = None
    password_changed_at: datetime | None = None
    reset_token_hash: str | None = None
    reset_token_expires_at: datetime | None = None
    created_at: datetime | None = None

    def correct_password(self, candidate: str, hashed: str | None = None) -> bool:
        """Compare a plaintext candidate against the stored (or given) bcrypt hash."""
        return verify_password(candidate, hashed if hashed is not None else self.hashed_password)

    def changed_password_since(self, issued_at: datetime) -> bool:
        """True if the password changed after a token issued at issued_at.

        Compared at microsecond precision. A token issued at the very instant
        of the change is still accepted.
        """
        if self.password_changed_at is None:
            return False
        return issued_at < self.password_changed_at

    def set_password(self, password: str, password_confirm: str, now: datetime | None = None) -> None:
        validate_password(password, password_confirm)
        self.hashed_password = hash_password(password)
        self.password_changed_at = now or _utcnow()

    def create_reset_token(self, expire_minutes: int = 10, now: datetime | None = None) -> str:
        """Issue a new reset token, keeping only its digest. Returns the raw token."""
        raw_token = generate_reset_token()
        self.reset_token_hash = digest_reset_token(raw_token)
        self.reset_token_expires_at = (now or _utcnow()) + timedelta(minutes=expire_minutes)
        return raw_token

    def clear_reset_token(self) -> None:
        self.reset_token_hash = None
        self.reset_token_expires_at = None


@dataclass(frozen=True)
class TokenClaims:
    """Decoded session token."""

    user_id: int
    issued_at: datetime
    expires_at: datetime
