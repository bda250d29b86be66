"""
tests/conftest.py -- Shared test fixtures for Shopfront tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for accounts + products
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient with an admin JWT for API integration tests
  - make_account: registers a fresh account through the API
  - account_store / product_store: plain in-memory stores for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixtures because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

DEBUG must be set before any auth/core import so get_settings() auto-generates
SECRET_KEY instead of raising. LOGIN_RATE_LIMIT is raised so the suite's many
logins never trip the limiter.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Account, Role
from auth.store import AccountStore
from auth.tokens import create_access_token, hash_password
from catalog.store import ProductStore

_counter = itertools.count(1)

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[AccountStore, ProductStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    catalog_url = f"sqlite:///file:test_catalog_{db_suffix}?mode=memory&cache=shared&uri=true"
    return AccountStore(db_url=auth_url), ProductStore(db_url=catalog_url)


def _patch_lifespan(account_store: AccountStore, product_store: ProductStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = account_store
        app.state.product_store = product_store
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# API fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The admin is inserted directly into the store (there is no public way to
    create the first admin) and given a one-hour access token.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    account_store, product_store = _make_test_stores(suffix)

    admin_id = account_store.create_account(
        Account(
            name="Test Admin",
            email=f"admin@{suffix}.test",
            hashed_password=hash_password("adminpass123"),
            role=Role.admin,
        )
    )
    token = create_access_token(admin_id, Role.admin)

    app.router.lifespan_context = _patch_lifespan(account_store, product_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin_id

    account_store.close()
    product_store.close()


@pytest.fixture
def make_account(api_client) -> Callable[..., dict]:
    """Return a factory that registers a new account and returns its auth payload.

    The returned dict is the register response's data plus "password".
    """
    client, _token, _admin_id = api_client

    def _make(role: str = "customer", password: str = "secret123", email: str | None = None) -> dict:
        email = email or f"user{next(_counter)}@example.com"
        resp = client.post(
            "/api/auth/register",
            json={"name": "Test User", "email": email, "password": password, "role": role},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        data["password"] = password
        return data

    return _make


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def account_store() -> Generator[AccountStore, None, None]:
    store = AccountStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def product_store() -> Generator[ProductStore, None, None]:
    store = ProductStore("sqlite:///:memory:")
    yield store
    store.close()
