"""
auth/passwords.py -- Password hashing and reset-token digests.

Passwords: bcrypt directly (no passlib wrapper). bcrypt.checkpw compares in
    constant time and the per-hash salt is embedded in the stored value.

Reset tokens: 32 random bytes rendered as hex. Only the SHA-256 digest is
    stored, so a leaked users table does not hand out working reset links.
    SHA-256 (not bcrypt) is enough here -- the input has 256 bits of entropy
    and the digest must be deterministic to support lookup by token.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hashlib
import secrets

import bcrypt


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes; the store caps password length
    well below that.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


# Timing equalization: login runs bcrypt against this hash when the email is
# unknown, so a miss costs the same as a wrong password.
DUMMY_HASH: str = hash_password("tourguard_timing_dummy")


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def digest_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()
