"""
auth/tokens.py -- Signed session tokens.

JWT via python-jose with HS256. A token carries only the user id (sub), the
issue time (iat) and the expiry (exp). Nothing is persisted: validity is the
signature plus expiry, and SessionGuard adds the password-change check.

The signing secret and the time-to-live are constructor arguments. api/main.py
builds the single TokenService from Settings at startup; nothing here reads
configuration on its own.

Expiry boundary: python-jose rejects a token once now > exp, so a token is
still accepted during its final second.

iat is encoded as a float (seconds with microseconds), not truncated to an
integer, so a token minted earlier in the same second as a password change
is still recognised as older than the change.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import InvalidToken
from auth.models import TokenClaims

DEFAULT_ALGORITHM = "HS256"


class TokenService:
    """Issues and verifies session tokens.

    Usage:
        tokens = TokenService(secret_key=settings.secret_key, expire_seconds=3600)
        raw = tokens.issue(user.id)
        claims = tokens.verify(raw)   # raises InvalidToken
    """

    def __init__(self, secret_key: str, expire_seconds: int, algorithm: str = DEFAULT_ALGORITHM) -> None:
        if not secret_key:
            raise ValueError("secret_key is required")
        if expire_seconds <= 0:
            raise ValueError("expire_seconds must be positive")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.expire_seconds = expire_seconds

    def issue(self, user_id: int, now: datetime | None = None) -> str:
        """Encode a signed token for user_id, valid for expire_seconds from now."""
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": issued_at.timestamp(),
            "exp": issued_at + timedelta(seconds=self.expire_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify(self, raw_token: str) -> TokenClaims:
        """Decode and check a token. Raises InvalidToken on any failure."""
        try:
            payload = jwt.decode(raw_token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc

        try:
            user_id = int(payload["sub"])
            issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken("Token is missing required claims") from exc

        return TokenClaims(user_id=user_id, issued_at=issued_at, expires_at=expires_at)
