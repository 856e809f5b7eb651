"""
tests/helpers.py -- Credential-store doubles and service wiring shared by the suite.

This module provides:
  - InMemoryCredentialStore: dict-backed double for all four capability
    contracts. Its lock plays the part of the database UNIQUE constraint.
  - FailingStore: every call reports a backend failure with engine-looking text.
  - BlockingStore: parks calls on a threading.Event to exercise deadlines.
  - SpyTokenIssuer: real TokenIssuer that records every issue() call.
  - make_service: one double wired into every AuthService capability.

Fixtures built on these live in conftest.py.
"""

from __future__ import annotations

import secrets
import threading
from datetime import timedelta

from auth.errors import StorageError, StorageErrorKind
from auth.models import App, User
from auth.service import AuthService
from auth.tokens import TokenIssuer

TEST_COST = 4
TEST_TTL = timedelta(minutes=15)
APP_ID = 7

# Looks like something a real engine would say; must never reach a caller.
BACKEND_TEXT = "sqlite3.OperationalError: disk I/O error at /var/lib/sso/sso.db"


# ---------------------------------------------------------------------------
# Doubles
# ---------------------------------------------------------------------------


class InMemoryCredentialStore:
    """Implements UserSaver, UserProvider, AdminProvider and AppProvider."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._by_id: dict[int, User] = {}
        self._apps: dict[int, App] = {}
        self._next_id = 1

    def save_user(self, email: str, pass_hash: bytes) -> int:
        with self._lock:
            if email in self._users:
                raise StorageError(StorageErrorKind.USER_EXISTS, "email already registered")
            user = User(email=email, pass_hash=pass_hash, id=self._next_id)
            self._next_id += 1
            self._users[email] = user
            self._by_id[user.id] = user
            return user.id

    def get_by_email(self, email: str) -> User:
        user = self._users.get(email)
        if user is None:
            raise StorageError(StorageErrorKind.USER_NOT_FOUND)
        return user

    def is_admin(self, user_id: int) -> bool:
        user = self._by_id.get(user_id)
        if user is None:
            raise StorageError(StorageErrorKind.USER_NOT_FOUND)
        return user.is_admin

    def get_app(self, app_id: int) -> App:
        app_ = self._apps.get(app_id)
        if app_ is None:
            raise StorageError(StorageErrorKind.APP_NOT_FOUND)
        return app_

    # Test setup helpers -- not part of any contract.

    def add_app(self, app_id: int, name: str, secret: str | None = None) -> App:
        app_ = App(id=app_id, name=name, secret=secrets.token_hex(32) if secret is None else secret)
        self._apps[app_id] = app_
        return app_

    def set_admin(self, user_id: int, is_admin: bool = True) -> None:
        self._by_id[user_id].is_admin = is_admin


class FailingStore:
    """Every capability fails with a backend error."""

    def _fail(self, *args):
        raise StorageError(StorageErrorKind.BACKEND, BACKEND_TEXT)

    save_user = get_by_email = is_admin = get_app = _fail


class BlockingStore(InMemoryCredentialStore):
    """Blocks save_user and get_by_email until release is set."""

    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()
        self.entered = threading.Event()

    def save_user(self, email: str, pass_hash: bytes) -> int:
        self.entered.set()
        self.release.wait(timeout=5)
        return super().save_user(email, pass_hash)

    def get_by_email(self, email: str) -> User:
        self.entered.set()
        self.release.wait(timeout=5)
        return super().get_by_email(email)


class SpyTokenIssuer(TokenIssuer):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.calls: list[tuple[int, int]] = []

    def issue(self, user: User, app: App, ttl: timedelta) -> str:
        self.calls.append((user.id, app.id))
        return super().issue(user, app, ttl)


def make_service(store, issuer: TokenIssuer | None = None, **kwargs) -> AuthService:
    """Wire one double into all four capabilities."""
    return AuthService(
        store,
        store,
        store,
        store,
        issuer or SpyTokenIssuer(),
        token_ttl=kwargs.pop("token_ttl", TEST_TTL),
        hash_cost=kwargs.pop("hash_cost", TEST_COST),
        **kwargs,
    )

