"""
tests/conftest.py -- Shared fixtures.

Env vars must be set before any api/ or core/ import so get_settings() picks
them up: bcrypt cost 4 keeps hashing fast, and the login rate limit is raised
so ordinary tests never trip it.

Store doubles and make_service live in tests/helpers.py.
"""

from __future__ import annotations

import os
import secrets
from collections.abc import Generator
from contextlib import asynccontextmanager

os.environ.setdefault("BCRYPT_COST", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ENV", "local")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, build_auth_service
from auth.models import App
from auth.service import AuthService
from auth.store import CredentialStore
from helpers import APP_ID, InMemoryCredentialStore, SpyTokenIssuer, make_service

# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryCredentialStore:
    """In-memory store with app 7 registered."""
    s = InMemoryCredentialStore()
    s.add_app(APP_ID, "billing")
    return s


@pytest.fixture
def issuer() -> SpyTokenIssuer:
    return SpyTokenIssuer()


@pytest.fixture
def service(store: InMemoryCredentialStore, issuer: SpyTokenIssuer) -> AuthService:
    return make_service(store, issuer)


@pytest.fixture
def sql_store(tmp_path) -> Generator[CredentialStore, None, None]:
    """File-backed SQLite store.

    A file rather than :memory: because AuthService calls the store from
    worker threads, and a plain in-memory SQLite database is per-connection.
    """
    s = CredentialStore(f"sqlite:///{tmp_path / 'sso.db'}")
    yield s
    s.close()


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: CredentialStore):
    """Return a lifespan that wires the test store into app.state instead of DATABASE_URL."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.auth_service = build_auth_service(store)
        yield

    return test_lifespan


@pytest.fixture
def api_client(sql_store: CredentialStore) -> Generator[tuple[TestClient, App, CredentialStore], None, None]:
    """Yield (client, tenant_app, store) against a fresh database per test."""
    tenant = sql_store.create_app("billing", secrets.token_hex(32))
    app.router.lifespan_context = _patch_lifespan(sql_store)
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, tenant, sql_store

    limiter.reset()
