"""
tests/conftest.py -- Shared test fixtures for tourguard.

This module provides:
  - store:       isolated shared-memory UserStore for unit tests
  - tokens:      TokenService with a fixed test secret
  - make_user:   factory fixture that creates a user through the real store
  - api_client:  TestClient over the real app with a patched lifespan, an
                 isolated shared-memory store and a mocked mailer

Design: both stores use a named shared-memory SQLite URI (not plain :memory:)
because TestClient runs sync route handlers in a thread pool and
PasswordResetFlow moves store calls onto worker threads. Plain :memory: DBs
are per-connection, so each worker thread would see a blank schema. Every
fixture instance gets its own DB name, so tests never share users.

The DEBUG env var must be set before any api/ or core/ import so
get_settings() auto-generates SECRET_KEY instead of raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from unittest.mock import MagicMock

# CRITICAL: Set DEBUG before any core/api import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app, install_components
from auth.models import User
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from core.mailer import EmailGatewayClient

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"
TEST_PASSWORD = "secret123"


def _memory_db_url() -> str:
    return f"sqlite:///file:test_users_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _make_user(
    store: UserStore,
    email: str = "traveller@example.com",
    role: str = "user",
    name: str = "Test Traveller",
    password: str = TEST_PASSWORD,
) -> User:
    return store.create(
        {
            "name": name,
            "email": email,
            "role": role,
            "password": password,
            "password_confirm": password,
        }
    )


@pytest.fixture
def make_user():
    """Factory: make_user(store, email=..., role=...) creates a user through the real store."""
    return _make_user


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore(_memory_db_url())
    yield s
    s.close()


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET, expire_seconds=3600)


@dataclass
class ApiHarness:
    client: TestClient
    store: UserStore
    mailer: MagicMock
    tokens: TokenService

    def bearer(self, user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens.issue(user.id)}"}


def _patch_lifespan(store: UserStore, mailer: MagicMock):
    """Return a lifespan that wires the test store and mailer into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        install_components(app, get_settings(), store, mailer)
        yield

    return test_lifespan


@pytest.fixture
def api_client() -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness over the real app with an isolated store.

    mailer.send succeeds by default; tests set side_effect to simulate
    delivery failures.
    """
    store = UserStore(_memory_db_url())
    mailer = MagicMock(spec=EmailGatewayClient)
    mailer.send.return_value = None

    app.router.lifespan_context = _patch_lifespan(store, mailer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, store=store, mailer=mailer, tokens=app.state.token_service)

    store.close()
