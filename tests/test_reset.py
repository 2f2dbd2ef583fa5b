"""Unit tests for auth/reset.py -- PasswordResetFlow.

Covers:
- unknown email raises UserNotFound and sends nothing
- the emailed URL carries the raw token while the store keeps its digest
- a failing, slow or misbehaving mailer clears the token and raises
  EmailDeliveryError; a cancelled request clears it too
- complete_reset() sets the password, consumes the token once, and turns
  earlier sessions stale
- expired tokens and bad passwords are rejected; a bad password does not
  burn the token

request_reset() is a coroutine; tests drive it with asyncio.run().
"""

import asyncio
import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from auth.errors import EmailDeliveryError, InvalidResetToken, StaleSession, UserNotFound, ValidationError
from auth.guard import SessionGuard
from auth.passwords import digest_reset_token
from auth.reset import RESET_PATH, PasswordResetFlow, build_reset_message
from core.mailer import DeliveryError, EmailGatewayClient, EmailMessage

BASE_URL = "http://127.0.0.1:8000"


@pytest.fixture
def mailer() -> MagicMock:
    m = MagicMock(spec=EmailGatewayClient)
    m.send.return_value = None
    return m


@pytest.fixture
def flow(store, mailer) -> PasswordResetFlow:
    return PasswordResetFlow(store, mailer, expire_minutes=10, email_timeout=1.0)


def _raw_token_from(mailer: MagicMock) -> str:
    message: EmailMessage = mailer.send.call_args.args[0]
    url = next(word for word in message.body.split() if RESET_PATH in word)
    return url.rstrip(".").rsplit("/", 1)[1]


class TestRequestReset:
    def test_unknown_email_raises_and_sends_nothing(self, flow, mailer) -> None:
        with pytest.raises(UserNotFound):
            asyncio.run(flow.request_reset("nobody@example.com", BASE_URL))
        mailer.send.assert_not_called()

    def test_email_carries_raw_token_and_store_keeps_digest(self, flow, mailer, store, make_user) -> None:
        user = make_user(store)
        asyncio.run(flow.request_reset(user.email, BASE_URL))

        message: EmailMessage = mailer.send.call_args.args[0]
        assert message.to == "traveller@example.com"
        assert message.subject == "Your password reset token (valid for 10 mins)"
        assert f"{BASE_URL}{RESET_PATH}" in message.body

        raw = _raw_token_from(mailer)
        assert len(raw) == 64
        stored = store.find_by_id(user.id)
        assert stored.reset_token_hash == digest_reset_token(raw)
        assert stored.reset_token_hash != raw
        remaining = stored.reset_token_expires_at - datetime.now(timezone.utc)
        assert timedelta(minutes=9) < remaining <= timedelta(minutes=10)

    def test_failed_delivery_clears_token(self, flow, mailer, store, make_user) -> None:
        user = make_user(store)
        mailer.send.side_effect = DeliveryError("gateway down")

        with pytest.raises(EmailDeliveryError):
            asyncio.run(flow.request_reset(user.email, BASE_URL))

        stored = store.find_by_id(user.id)
        assert stored.reset_token_hash is None
        assert stored.reset_token_expires_at is None

    def test_slow_delivery_times_out_and_clears_token(self, store, make_user) -> None:
        user = make_user(store)
        slow = MagicMock(spec=EmailGatewayClient)
        slow.send.side_effect = lambda message: time.sleep(0.3)
        flow = PasswordResetFlow(store, slow, email_timeout=0.05)

        with pytest.raises(EmailDeliveryError):
            asyncio.run(flow.request_reset(user.email, BASE_URL))

        assert store.find_by_id(user.id).reset_token_hash is None

    def test_unexpected_mailer_error_clears_token(self, flow, mailer, store, make_user) -> None:
        user = make_user(store)
        mailer.send.side_effect = AttributeError("'list' object has no attribute 'get'")

        with pytest.raises(EmailDeliveryError):
            asyncio.run(flow.request_reset(user.email, BASE_URL))

        assert store.find_by_id(user.id).reset_token_hash is None

    @pytest.mark.parametrize("reply", [["queued"], "ok", None])
    def test_gateway_reply_that_is_not_an_object_clears_token(self, store, make_user, reply) -> None:
        user = make_user(store)
        client = EmailGatewayClient("https://mail.example.test/send", "key", "hmac-secret")
        response = MagicMock(status_code=200)
        response.json.return_value = reply
        flow = PasswordResetFlow(store, client, email_timeout=1.0)

        with patch.object(requests.Session, "post", return_value=response):
            with pytest.raises(EmailDeliveryError):
                asyncio.run(flow.request_reset(user.email, BASE_URL))
        client.close()

        assert store.find_by_id(user.id).reset_token_hash is None

    def test_cancelled_request_clears_token(self, store, make_user) -> None:
        user = make_user(store)
        started = threading.Event()

        def _slow_send(message):
            started.set()
            time.sleep(0.3)

        slow = MagicMock(spec=EmailGatewayClient)
        slow.send.side_effect = _slow_send
        flow = PasswordResetFlow(store, slow, email_timeout=5.0)

        async def _cancel_mid_send():
            task = asyncio.create_task(flow.request_reset(user.email, BASE_URL))
            await asyncio.to_thread(started.wait, 2.0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(_cancel_mid_send())

        assert store.find_by_id(user.id).reset_token_hash is None

    def test_new_request_replaces_previous_token(self, flow, mailer, store, make_user) -> None:
        user = make_user(store)
        asyncio.run(flow.request_reset(user.email, BASE_URL))
        first = _raw_token_from(mailer)
        asyncio.run(flow.request_reset(user.email, BASE_URL))
        second = _raw_token_from(mailer)

        assert first != second
        with pytest.raises(InvalidResetToken):
            flow.complete_reset(first, "another1", "another1")
        assert flow.complete_reset(second, "another1", "another1").id == user.id


class TestCompleteReset:
    def _issue(self, store, user, **kwargs) -> str:
        raw = user.create_reset_token(**kwargs)
        store.save(user, skip_validation=True)
        return raw

    def test_sets_new_password_and_consumes_token(self, flow, store, make_user) -> None:
        user = make_user(store)
        raw = self._issue(store, user)

        updated = flow.complete_reset(raw, "brand-new-pass", "brand-new-pass")

        stored = store.find_by_id(user.id)
        assert updated.id == user.id
        assert stored.correct_password("brand-new-pass")
        assert not stored.correct_password("secret123")
        assert stored.password_changed_at is not None
        assert stored.reset_token_hash is None

        with pytest.raises(InvalidResetToken):
            flow.complete_reset(raw, "other-pass", "other-pass")

    def test_expired_token_is_rejected(self, flow, store, make_user) -> None:
        user = make_user(store)
        raw = self._issue(store, user, now=datetime.now(timezone.utc) - timedelta(minutes=11))
        with pytest.raises(InvalidResetToken):
            flow.complete_reset(raw, "brand-new-pass", "brand-new-pass")

    def test_unknown_token_is_rejected(self, flow) -> None:
        with pytest.raises(InvalidResetToken):
            flow.complete_reset("0" * 64, "brand-new-pass", "brand-new-pass")

    @pytest.mark.parametrize("password,confirm", [("short", "short"), ("brand-new-pass", "mismatch-pass")])
    def test_bad_password_does_not_burn_token(self, flow, store, make_user, password, confirm) -> None:
        user = make_user(store)
        raw = self._issue(store, user)

        with pytest.raises(ValidationError):
            flow.complete_reset(raw, password, confirm)

        assert store.find_by_id(user.id).reset_token_hash == digest_reset_token(raw)
        flow.complete_reset(raw, "brand-new-pass", "brand-new-pass")

    def test_earlier_sessions_become_stale(self, flow, store, tokens, make_user) -> None:
        user = make_user(store)
        old_session = tokens.issue(user.id, now=datetime.now(timezone.utc) - timedelta(minutes=1))
        raw = self._issue(store, user)

        flow.complete_reset(raw, "brand-new-pass", "brand-new-pass")

        guard = SessionGuard(tokens, store)
        with pytest.raises(StaleSession):
            guard.authenticate(f"Bearer {old_session}")


def test_build_reset_message_mentions_link_and_validity() -> None:
    message = build_reset_message("a@x.com", "http://host/api/v1/auth/reset-password/abc", 10)
    assert message.to == "a@x.com"
    assert "(valid for 10 mins)" in message.subject
    assert "http://host/api/v1/auth/reset-password/abc" in message.body
