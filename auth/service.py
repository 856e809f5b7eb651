"""
auth/service.py -- Login, registration and admin lookup.

AuthService holds injected, read-only references to its collaborators and no
other state, so one instance serves any number of concurrent requests without
locking. Uniqueness under concurrent registration is the store's job (UNIQUE
constraint); the service surfaces whatever the store reports and never
retries.

Blocking work -- store calls and bcrypt -- runs in worker threads via
asyncio.to_thread. Callers bound or cancel an operation with the usual asyncio
tools (asyncio.wait_for, task.cancel()); a cancelled operation raises
CancelledError and never reports success.

Security:
  Account enumeration: unknown email and wrong password both raise
       INVALID_CREDENTIALS, and an unknown email still pays for one bcrypt
       comparison against a dummy hash so response time does not tell them
       apart.
  Password hashes never appear in log lines, errors, or return values.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from auth.contracts import AdminProvider, AppProvider, UserProvider, UserSaver
from auth.errors import AuthError, ErrorKind, StorageError, StorageErrorKind
from auth.tokens import (
    MAX_COST,
    MAX_PASSWORD_BYTES,
    MIN_COST,
    PasswordTooLongError,
    TokenIssuer,
    hash_password,
    verify_password,
)

DEFAULT_HASH_COST = 12


class AuthService:
    """Auth domain service.

    Args:
        user_saver:     Persists new users.
        user_provider:  Resolves users by email.
        admin_provider: Answers admin-flag lookups.
        app_provider:   Resolves tenant apps by id.
        token_issuer:   Signs tokens on successful login.
        token_ttl:      Lifetime of issued tokens.
        hash_cost:      bcrypt work factor, fixed for the life of the service.
        logger:         Defaults to the "sso.auth" logger.
    """

    def __init__(
        self,
        user_saver: UserSaver,
        user_provider: UserProvider,
        admin_provider: AdminProvider,
        app_provider: AppProvider,
        token_issuer: TokenIssuer,
        *,
        token_ttl: timedelta,
        hash_cost: int = DEFAULT_HASH_COST,
        logger: logging.Logger | None = None,
    ) -> None:
        if not MIN_COST <= hash_cost <= MAX_COST:
            raise ValueError(f"hash_cost must be between {MIN_COST} and {MAX_COST}, got {hash_cost}")
        if token_ttl <= timedelta(0):
            raise ValueError("token_ttl must be positive")
        self._user_saver = user_saver
        self._user_provider = user_provider
        self._admin_provider = admin_provider
        self._app_provider = app_provider
        self._token_issuer = token_issuer
        self._token_ttl = token_ttl
        self._hash_cost = hash_cost
        self._log = logger or logging.getLogger("sso.auth")
        # Same cost as real hashes so the unknown-email path costs the same.
        self._dummy_hash = hash_password("sso_timing_dummy", hash_cost)

    @property
    def token_ttl(self) -> timedelta:
        return self._token_ttl

    async def login(self, email: str, password: str, app_id: int) -> str:
        """Authenticate email/password and return a token scoped to app_id.

        Raises AuthError with kind:
          INVALID_CREDENTIALS -- unknown email or wrong password (indistinguishable).
          INVALID_APP_ID      -- app_id does not resolve; no token is signed.
          INTERNAL            -- store or signing failure.
        """
        op = "auth.login"
        self._log.info("%s: attempting to login user email=%s app_id=%s", op, email, app_id)

        try:
            user = await asyncio.to_thread(self._user_provider.get_by_email, email)
        except StorageError as exc:
            if exc.kind is StorageErrorKind.USER_NOT_FOUND:
                await asyncio.to_thread(verify_password, password, self._dummy_hash)
                self._log.warning("%s: user not found email=%s", op, email)
                raise AuthError(ErrorKind.INVALID_CREDENTIALS, op) from None
            self._log.error("%s: failed to get user: %s", op, exc)
            raise AuthError(ErrorKind.INTERNAL, op) from exc
        except Exception as exc:
            self._log.exception("%s: failed to get user", op)
            raise AuthError(ErrorKind.INTERNAL, op) from exc

        if not await asyncio.to_thread(verify_password, password, user.pass_hash):
            self._log.info("%s: invalid credentials user_id=%s", op, user.id)
            raise AuthError(ErrorKind.INVALID_CREDENTIALS, op)

        try:
            app = await asyncio.to_thread(self._app_provider.get_app, app_id)
        except Exception as exc:
            # Any failure to resolve the app is INVALID_APP_ID; no token is attempted.
            self._log.info("%s: invalid app_id=%s: %s", op, app_id, exc)
            raise AuthError(ErrorKind.INVALID_APP_ID, op, app_id=app_id) from exc

        try:
            token = self._token_issuer.issue(user, app, self._token_ttl)
        except Exception as exc:
            # JWTError for an unsigned app, anything else for a bad claim value.
            self._log.exception("%s: failed to generate token user_id=%s app_id=%s", op, user.id, app_id)
            raise AuthError(ErrorKind.INTERNAL, op, user_id=user.id, app_id=app_id) from exc

        self._log.info("%s: user logged in user_id=%s app_id=%s", op, user.id, app_id)
        return token

    async def register(self, email: str, password: str) -> int:
        """Create a user with a bcrypt-hashed password and return the new id.

        Raises AuthError with kind:
          INVALID_CREDENTIALS -- password longer than MAX_PASSWORD_BYTES; nothing is stored.
          USER_EXISTS         -- the store reports a duplicate email.
          INTERNAL            -- any other failure.
        """
        op = "auth.register"
        self._log.info("%s: registering user email=%s", op, email)

        try:
            pass_hash = await asyncio.to_thread(hash_password, password, self._hash_cost)
        except PasswordTooLongError:
            # Caller input, not a server fault. Nothing is stored.
            self._log.warning("%s: password exceeds %d bytes email=%s", op, MAX_PASSWORD_BYTES, email)
            raise AuthError(ErrorKind.INVALID_CREDENTIALS, op) from None
        except Exception as exc:
            self._log.error("%s: failed to generate password hash: %s", op, type(exc).__name__)
            raise AuthError(ErrorKind.INTERNAL, op) from exc

        try:
            user_id = await asyncio.to_thread(self._user_saver.save_user, email, pass_hash)
        except StorageError as exc:
            if exc.kind is StorageErrorKind.USER_EXISTS:
                self._log.warning("%s: user already exists email=%s", op, email)
                raise AuthError(ErrorKind.USER_EXISTS, op) from exc
            self._log.error("%s: failed to save user: %s", op, exc)
            raise AuthError(ErrorKind.INTERNAL, op) from exc
        except Exception as exc:
            self._log.exception("%s: failed to save user", op)
            raise AuthError(ErrorKind.INTERNAL, op) from exc

        self._log.info("%s: user registered user_id=%s", op, user_id)
        return user_id

    async def is_admin(self, user_id: int) -> bool:
        """Return the live admin flag for user_id. No caching.

        Raises AuthError with kind INVALID_APP_ID if the user is unknown,
        INTERNAL for any other failure.
        """
        op = "auth.is_admin"
        self._log.info("%s: checking if user is admin user_id=%s", op, user_id)

        try:
            is_admin = await asyncio.to_thread(self._admin_provider.is_admin, user_id)
        except StorageError as exc:
            if exc.kind in (StorageErrorKind.USER_NOT_FOUND, StorageErrorKind.APP_NOT_FOUND):
                self._log.warning("%s: user not found user_id=%s", op, user_id)
                raise AuthError(ErrorKind.INVALID_APP_ID, op, user_id=user_id) from exc
            self._log.error("%s: failed to check admin flag: %s", op, exc)
            raise AuthError(ErrorKind.INTERNAL, op, user_id=user_id) from exc
        except Exception as exc:
            self._log.exception("%s: failed to check admin flag", op)
            raise AuthError(ErrorKind.INTERNAL, op, user_id=user_id) from exc

        self._log.info("%s: completed admin check user_id=%s is_admin=%s", op, user_id, is_admin)
        return is_admin
