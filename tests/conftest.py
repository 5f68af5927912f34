"""
tests/conftest.py -- Shared test fixtures for AutoMarket integration tests.

This module provides:
  - memory_url(): named shared-memory SQLite URL for one isolated store
  - mock_image_host(): httpx.MockTransport standing in for the image host
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient with an admin JWT for API integration tests
  - register: helper fixture that creates a principal through the API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.

SECRET_KEY, DATABASE_URL and DEBUG must be set before any auth/core import so
get_settings() builds a valid Settings object.
"""

from __future__ import annotations

import os
import re
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any auth/core import; get_settings() is cached.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", "automarket-test-secret-key-0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite:///file:automarket_default?mode=memory&cache=shared&uri=true")

import httpx
import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password, issue_token
from core.uploader import ImageUploader
from market.store import MarketStore

# Rate limits would make repeated register/login calls flaky across tests.
limiter.enabled = False

ADMIN_EMAIL = "admin@automarket.test"
ADMIN_PASSWORD = "adminpass123"

_FILENAME_RE = re.compile(rb'filename="([^"]+)"')


# ---------------------------------------------------------------------------
# Store and image host helpers
# ---------------------------------------------------------------------------


def memory_url(name: str) -> str:
    """Return a unique named shared-memory SQLite URL."""
    return f"sqlite:///file:{name}_{uuid.uuid4().hex[:8]}?mode=memory&cache=shared&uri=true"


def mock_image_host() -> httpx.MockTransport:
    """Image host double.

    Echoes the uploaded filename back in secure_url. Any filename starting
    with "fail" is rejected with HTTP 500.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        match = _FILENAME_RE.search(request.content)
        filename = match.group(1).decode() if match else "unknown"
        if filename.startswith("fail"):
            return httpx.Response(500, json={"error": {"message": "boom"}})
        return httpx.Response(
            200,
            json={"secure_url": f"https://res.cloudinary.com/test/image/upload/vehicles/{filename}"},
        )

    return httpx.MockTransport(handler)


def make_uploader() -> ImageUploader:
    return ImageUploader(
        cloud_name="test",
        api_key="key",
        api_secret="secret",
        transport=mock_image_host(),
    )


def _patch_lifespan(user_store: UserStore, market: MarketStore, uploader: ImageUploader):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.market = market
        app.state.uploader = uploader
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    One client per test module. The admin user is created directly in the
    store before the client starts, so the store is never empty during tests.
    """
    user_store = UserStore(memory_url("api_users"))
    market = MarketStore(memory_url("api_market"))

    admin = User(
        username="testadmin",
        email=ADMIN_EMAIL,
        hashed_password=hash_password(ADMIN_PASSWORD),
        role="admin",
    )
    uid = user_store.create_user(admin)
    token = issue_token(uid, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, market, make_uploader())

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, uid

    user_store.close()
    market.close()


@pytest.fixture
def register(api_client) -> Callable[..., tuple[str, str]]:
    """Return a helper that registers a fresh principal and yields (token, user_id)."""
    client, _, _ = api_client

    def _register(username: str = "buyer", password: str = "buyerpass", email: str | None = None):
        email = email or f"{username}-{uuid.uuid4().hex[:8]}@example.com"
        resp = client.post(
            "/api/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()
        return data["token"], data["user"]["id"]

    return _register
