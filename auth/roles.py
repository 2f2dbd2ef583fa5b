"""
auth/roles.py -- Role-based authorization.

RoleGate runs after SessionGuard. Reaching it without an authenticated user
means a route was wired without the guard -- that is a bug, so it raises
RuntimeError (a 500) rather than a 401.
"""

from __future__ import annotations

from collections.abc import Collection

from auth.errors import Forbidden
from auth.models import User


class RoleGate:
    def authorize(self, user: User | None, allowed_roles: Collection[str]) -> None:
        """Raise Forbidden unless user.role is one of allowed_roles."""
        if user is None:
            raise RuntimeError("RoleGate.authorize() called without an authenticated user")
        if user.role not in allowed_roles:
            raise Forbidden()
