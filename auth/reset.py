"""
auth/reset.py -- Forgot-password and reset-password flow.

request_reset():
  1. Look up the user by email (UserNotFound -> 404 if absent)
  2. Issue a reset token on the user and save without validation
  3. Email the reset link (blocking send on a worker thread, bounded timeout)
  4. If the send fails for any reason or times out: clear the token, save
     again, and raise EmailDeliveryError. Cancellation clears the token too.
     A reset token never stays live for a user who was not told about it.

Store calls in request_reset() run on worker threads so the event loop never
blocks on the database. complete_reset() is synchronous; its route is a plain
def handler and FastAPI runs it in the threadpool.

complete_reset():
  1. Hash the presented token and claim it from the store (exactly once)
  2. Set the new password -- this stamps password_changed_at, which turns
     every earlier session token stale
  3. Save with validation and return the user

The forgot-password path answers 404 for unknown emails, so it does reveal
whether an address is registered (login does not).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from auth.errors import EmailDeliveryError, InvalidResetToken, UserNotFound
from auth.models import User, validate_password
from auth.passwords import digest_reset_token
from auth.store import UserStore
from core.mailer import DeliveryError, EmailMessage

logger = logging.getLogger("tourguard.reset")

RESET_PATH = "/api/v1/auth/reset-password/"


class Mailer(Protocol):
    def send(self, message: EmailMessage) -> None: ...


def build_reset_message(email: str, reset_url: str, expire_minutes: int) -> EmailMessage:
    body = (
        f"Forgot your password? Submit a PATCH request with your new password and "
        f"passwordConfirm to: {reset_url}.\n"
        f"If you didn't forget your password, please ignore this email!"
    )
    return EmailMessage(
        to=email,
        subject=f"Your password reset token (valid for {expire_minutes} mins)",
        body=body,
    )


class PasswordResetFlow:
    def __init__(
        self,
        store: UserStore,
        mailer: Mailer,
        expire_minutes: int = 10,
        email_timeout: float = 10.0,
    ) -> None:
        self._store = store
        self._mailer = mailer
        self.expire_minutes = expire_minutes
        self.email_timeout = email_timeout

    async def request_reset(self, email: str, base_url: str) -> None:
        """Issue and email a reset token for the account behind email.

        base_url is "<scheme>://<host>" of the inbound request.

        Raises:
            UserNotFound: no account with this email.
            EmailDeliveryError: the email could not be sent; the token has
                been cleared again.
        """
        user = await asyncio.to_thread(self._store.find_by_email, email)
        if user is None:
            raise UserNotFound()

        raw_token = user.create_reset_token(expire_minutes=self.expire_minutes)
        await asyncio.to_thread(self._store.save, user, skip_validation=True)

        reset_url = f"{base_url.rstrip('/')}{RESET_PATH}{raw_token}"
        message = build_reset_message(user.email, reset_url, self.expire_minutes)

        try:
            await asyncio.wait_for(asyncio.to_thread(self._mailer.send, message), timeout=self.email_timeout)
        except asyncio.CancelledError:
            # Inline, no await: the task is being cancelled.
            self._withdraw_token(user)
            logger.warning("Reset request for user %d cancelled, token cleared", user.id)
            raise
        except (DeliveryError, asyncio.TimeoutError) as exc:
            await asyncio.to_thread(self._withdraw_token, user)
            logger.warning("Reset email to user %d failed, token cleared: %r", user.id, exc)
            raise EmailDeliveryError() from exc
        except Exception as exc:
            await asyncio.to_thread(self._withdraw_token, user)
            logger.exception("Unexpected mailer error for user %d, token cleared", user.id)
            raise EmailDeliveryError() from exc

        logger.info("Reset token issued for user %d", user.id)

    def _withdraw_token(self, user: User) -> None:
        user.clear_reset_token()
        self._store.save(user, skip_validation=True)

    def complete_reset(self, raw_token: str, password: str, password_confirm: str) -> User:
        """Consume a reset token and set a new password.

        Raises:
            InvalidResetToken: unknown, expired or already used token.
            ValidationError: the new password is not acceptable. Checked
                before the token is claimed, so a typo does not burn it.
        """
        validate_password(password, password_confirm)
        user = self._store.consume_reset_token(digest_reset_token(raw_token))
        if user is None:
            raise InvalidResetToken()

        user.set_password(password, password_confirm)
        self._store.save(user)
        logger.info("Password reset completed for user %d", user.id)
        return user
