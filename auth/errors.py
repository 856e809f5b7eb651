"""
auth/errors.py -- Error taxonomy for the auth service and its credential stores.

Two closed sets of kinds, one per side of the store boundary:

  StorageErrorKind / StorageError: what a credential store reports. Every
       implementation of the contracts in auth/contracts.py raises StorageError
       and nothing else, so the service can branch on .kind without knowing
       which engine sits behind the Protocol.

  ErrorKind / AuthError: what the service reports to its caller. The
       transport maps .kind to its own status codes. The message is built from
       the operation name and the kind only -- backend text stays on the
       chained __cause__ for logging and never reaches the caller.

Match on .kind, never on the message string.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_APP_ID = "invalid_app_id"
    USER_EXISTS = "user_exists"
    INTERNAL = "internal"


_MESSAGES = {
    ErrorKind.INVALID_CREDENTIALS: "invalid credentials",
    ErrorKind.INVALID_APP_ID: "invalid app id",
    ErrorKind.USER_EXISTS: "user already exists",
    ErrorKind.INTERNAL: "internal error",
}


class AuthError(Exception):
    """Failure raised by AuthService operations.

    Args:
        kind:    Taxonomy kind the caller matches on.
        op:      Originating operation, e.g. "auth.login".
        context: Non-sensitive identifiers (app_id, user_id) for observability.
                 Never pass passwords, hashes, or raw backend errors here.
    """

    def __init__(self, kind: ErrorKind, op: str, **context: object) -> None:
        self.kind = kind
        self.op = op
        self.context = context
        super().__init__(f"{op}: {_MESSAGES[kind]}")

    @property
    def message(self) -> str:
        return _MESSAGES[self.kind]


class StorageErrorKind(str, Enum):
    USER_EXISTS = "user_exists"
    USER_NOT_FOUND = "user_not_found"
    APP_NOT_FOUND = "app_not_found"
    BACKEND = "backend"


class StorageError(Exception):
    """Signal raised by credential stores. .kind is the contract; the message is for logs."""

    def __init__(self, kind: StorageErrorKind, message: str = "") -> None:
        self.kind = kind
        super().__init__(message or kind.value)
