"""
auth/credentials.py -- Email/password verification (constant-time).

Always runs bcrypt whether or not the email exists, so an attacker cannot
enumerate accounts by timing the login endpoint:
  - Unknown email:  bcrypt runs against DUMMY_HASH
  - Wrong password: bcrypt runs against the real hash
Both cases raise the same InvalidCredentials message.
"""

from __future__ import annotations

import logging

from auth.errors import InvalidCredentials
from auth.models import User
from auth.passwords import DUMMY_HASH, verify_password
from auth.store import UserStore

logger = logging.getLogger("tourguard.auth")


class CredentialVerifier:
    def __init__(self, store: UserStore) -> None:
        self._store = store

    def verify(self, email: str, password: str) -> User:
        """Return the user owning (email, password) or raise InvalidCredentials."""
        if not email or not password:
            raise InvalidCredentials("Please provide email and password.")

        user = self._store.find_by_email(email)
        if user is None:
            verify_password(password, DUMMY_HASH)
            logger.info("Login failed: unknown email")
            raise InvalidCredentials()
        if not user.correct_password(password, user.hashed_password):
            logger.info("Login failed: wrong password for user %d", user.id)
            raise InvalidCredentials()
        return user
