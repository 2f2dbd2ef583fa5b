"""
auth/guard.py -- Request authentication gate.

SessionGuard runs an ordered pipeline of stages over a GuardContext:

  1. extract_bearer  -- Authorization: Bearer <token>, else Unauthenticated
  2. verify_token    -- TokenService.verify, InvalidToken -> Unauthenticated
  3. load_user       -- user still exists, else Unauthenticated
  4. reject_stale    -- token not older than the last password change,
                        else StaleSession

Each stage returns a new, enriched context or raises; the first failure ends
the pass. There are no retries and no partial results.

The guard knows nothing about FastAPI. auth/dependencies.py adapts it to
Depends() and attaches the resolved user to request.state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace

from auth.errors import InvalidToken, StaleSession, Unauthenticated
from auth.models import TokenClaims, User
from auth.store import UserStore
from auth.tokens import TokenService

logger = logging.getLogger("tourguard.auth")

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class GuardContext:
    authorization: str | None
    token: str | None = None
    claims: TokenClaims | None = None
    user: User | None = None


Stage = Callable[[GuardContext], GuardContext]


class SessionGuard:
    def __init__(self, tokens: TokenService, store: UserStore) -> None:
        self._tokens = tokens
        self._store = store
        self.stages: Sequence[Stage] = (
            self.extract_bearer,
            self.verify_token,
            self.load_user,
            self.reject_stale,
        )

    def authenticate(self, authorization: str | None) -> User:
        """Run every stage in order and return the resolved user."""
        ctx = GuardContext(authorization=authorization)
        for stage in self.stages:
            ctx = stage(ctx)
        return ctx.user

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def extract_bearer(self, ctx: GuardContext) -> GuardContext:
        header = ctx.authorization or ""
        if not header.startswith(BEARER_PREFIX):
            raise Unauthenticated()
        token = header[len(BEARER_PREFIX) :].strip()
        if not token:
            raise Unauthenticated()
        return replace(ctx, token=token)

    def verify_token(self, ctx: GuardContext) -> GuardContext:
        try:
            claims = self._tokens.verify(ctx.token)
        except InvalidToken as exc:
            logger.info("Rejected session token: %s", exc)
            raise Unauthenticated("Invalid or expired token. Please log in again.") from exc
        return replace(ctx, claims=claims)

    def load_user(self, ctx: GuardContext) -> GuardContext:
        user = self._store.find_by_id(ctx.claims.user_id)
        if user is None:
            raise Unauthenticated("The user belonging to this token no longer exists.")
        return replace(ctx, user=user)

    def reject_stale(self, ctx: GuardContext) -> GuardContext:
        if ctx.user.changed_password_since(ctx.claims.issued_at):
            logger.info("Stale session for user %d", ctx.user.id)
            raise StaleSession()
        return ctx
