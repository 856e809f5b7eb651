"""
auth/contracts.py -- Capability contracts the auth service needs from persistence.

One Protocol per capability (interface segregation). A real backend such as
auth/store.py.CredentialStore satisfies all four with one object, but the
service receives each capability as its own constructor argument and never
assumes they are the same instance. Test doubles implement only what a given
test exercises.

All methods are synchronous; AuthService moves them off the event loop.
Failures are reported exclusively as auth.errors.StorageError.
"""

from __future__ import annotations

from typing import Protocol

from auth.models import App, User


class UserSaver(Protocol):
    def save_user(self, email: str, pass_hash: bytes) -> int:
        """Insert a user and return its id.

        Raises StorageError(USER_EXISTS) if the email is taken. Must be atomic
        against concurrent inserts of the same email.
        """
        ...


class UserProvider(Protocol):
    def get_by_email(self, email: str) -> User:
        """Raises StorageError(USER_NOT_FOUND) if absent."""
        ...


class AdminProvider(Protocol):
    def is_admin(self, user_id: int) -> bool:
        """Raises StorageError(USER_NOT_FOUND) if the id is unknown."""
        ...


class AppProvider(Protocol):
    def get_app(self, app_id: int) -> App:
        """Raises StorageError(APP_NOT_FOUND) if absent."""
        ...
