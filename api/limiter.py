"""
api/limiter.py -- Shared slowapi rate limiter for the auth transport.

One instance for the whole app: api/main.py mounts it as middleware and
api/routes/v1/auth.py decorates the login route with login_limit(). Separate
instances would keep separate counters and the limit would never trip.

Login is the only limited route. bcrypt already makes each guess expensive;
the per-IP limit caps how many guesses a single client gets per window.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_limit() -> str:
    """Current LOGIN_RATE_LIMIT value, read per request so tests can override it."""
    return get_settings().login_rate_limit
