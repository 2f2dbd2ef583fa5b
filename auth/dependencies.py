"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_current_user() runs the SessionGuard pipeline on the request's
Authorization header and attaches the user to request.state.user.

restrict_to(roles) builds a dependency that requires an authenticated user
whose role is in roles:
    @router.get("/users")
    async def route(user: User = Depends(restrict_to({"admin"}))): ...

Failures are raised as AuthError subclasses; api/main.py turns them into the
error envelope.

This module may import from fastapi because it is part of the FastAPI
dependency injection system. Layer rule: no imports from api/.
"""

from __future__ import annotations

from collections.abc import Callable, Collection

from fastapi import Depends, Request

from auth.guard import SessionGuard
from auth.models import User
from auth.roles import RoleGate


def get_current_user(request: Request) -> User:
    """Require a valid, non-stale session token. Raises Unauthenticated or StaleSession."""
    guard: SessionGuard = request.app.state.session_guard
    user = guard.authenticate(request.headers.get("Authorization"))
    request.state.user = user
    return user


def restrict_to(roles: Collection[str]) -> Callable[..., User]:
    """Return a dependency that allows only the given roles. Raises Forbidden otherwise."""
    allowed = frozenset(roles)

    def _dependency(request: Request, user: User = Depends(get_current_user)) -> User:
        gate: RoleGate = request.app.state.role_gate
        gate.authorize(getattr(request.state, "user", None), allowed)
        return user

    return _dependency
