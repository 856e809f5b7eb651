"""
auth/tokens.py -- Password hashing and app-scoped JWT issuance.

Security design decisions:
  Passwords: bcrypt, used directly (no passlib wrapper). Bcrypt is the right
       choice for low-entropy secrets because its cost factor makes brute-force
       expensive. The cost is an argument, not a default: AuthService fixes it
       once at construction so no caller can pick an expensive (or cheap) hash
       per request.

  JWT: python-jose with HS256. Each token is signed with the secret of the app
       it was issued for, so a token minted for one tenant cannot be verified
       with another tenant's key. The app id also goes into the "kid" header so
       a resource server can select the right key before verifying.
       This module only issues tokens. Verification (signature + exp) belongs to
       the resource servers that consume them.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import App, TokenClaims, User

logger = logging.getLogger("sso.auth.tokens")

ALGORITHM = "HS256"

# bcrypt's own accepted range for the log2 work factor.
MIN_COST = 4
MAX_COST = 31

# bcrypt reads at most 72 bytes. 4.x silently truncates longer input and 5.x
# raises, so the limit is enforced here for every version.
MAX_PASSWORD_BYTES = 72


class PasswordTooLongError(ValueError):
    """Plaintext exceeds MAX_PASSWORD_BYTES when UTF-8 encoded."""


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, cost: int) -> bytes:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises PasswordTooLongError past MAX_PASSWORD_BYTES and ValueError for a
    cost outside bcrypt's range.
    """
    if not MIN_COST <= cost <= MAX_COST:
        raise ValueError(f"bcrypt cost must be between {MIN_COST} and {MAX_COST}, got {cost}")
    secret = plain.encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        raise PasswordTooLongError(f"password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=cost))


def verify_password(plain: str, hashed: bytes) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    checkpw compares in constant time. A malformed hash or an over-long
    password is a mismatch, not an error. Over-long input never reaches
    bcrypt, so a password sharing the first 72 bytes of a stored one does not
    match.
    """
    secret = plain.encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(secret, hashed)
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Token issuance
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Builds and signs app-scoped access tokens.

    Stateless apart from the injected clock; safe to share across concurrent
    requests.

    Usage:
        issuer = TokenIssuer()
        token = issuer.issue(user, app, timedelta(hours=1))
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow, algorithm: str = ALGORITHM) -> None:
        self._clock = clock
        self._algorithm = algorithm

    def build_claims(self, user: User, app: App, ttl: timedelta) -> TokenClaims:
        issued_at = int(self._clock().timestamp())
        return TokenClaims(
            user_id=user.id,
            email=user.email,
            app_id=app.id,
            issued_at=issued_at,
            expires_at=issued_at + int(ttl.total_seconds()),
        )

    def issue(self, user: User, app: App, ttl: timedelta) -> str:
        """Return a signed JWT for user, scoped to app, valid for ttl.

        Signing is deterministic for identical claims and key; two logins differ
        only through iat/exp.

        Raises jose.JWTError if the app has no signing secret or signing fails.
        """
        if not app.secret:
            raise JWTError(f"app {app.id} has no signing secret")
        claims = self.build_claims(user, app, ttl)
        token = jwt.encode(
            claims.to_payload(),
            app.secret,
            algorithm=self._algorithm,
            headers={"kid": str(app.id)},
        )
        logger.debug("Issued token for user_id=%s app_id=%s exp=%s", claims.user_id, claims.app_id, claims.expires_at)
        return token
