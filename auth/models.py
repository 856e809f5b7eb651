"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, zero logic beyond the claim
payload mapping). Stores build these; the service and token issuer read them.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A registered identity.

    email is unique and compared case-sensitively at this layer.

    pass_hash is the raw bcrypt output. repr=False keeps it out of log lines
    and tracebacks that format the dataclass.
    """

    email: str
    pass_hash: bytes = field(repr=False)
    id: int | None = None
    is_admin: bool = False
    created_at: str | None = None


@dataclass
class App:
    """A tenant application that consumes issued tokens.

    secret is the app's own HS256 signing key. Tokens for one app cannot be
    verified with another app's key. repr=False for the same reason as
    User.pass_hash.
    """

    id: int
    name: str
    secret: str = field(default="", repr=False)
    created_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Payload of one issued token. Built fresh per login, never persisted."""

    user_id: int
    email: str
    app_id: int
    issued_at: int  # epoch seconds
    expires_at: int  # epoch seconds

    def to_payload(self) -> dict:
        # python-jose requires "sub" to be a string; "uid" keeps the numeric form.
        return {
            "sub": str(self.user_id),
            "uid": self.user_id,
            "email": self.email,
            "app_id": self.app_id,
            "iat": self.issued_at,
            "exp": self.expires_at,
        }
