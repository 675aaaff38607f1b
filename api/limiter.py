"""
api/limiter.py -- Login throttling with slowapi [H2].

One Limiter for the whole process: api/main.py mounts it through
SlowAPIMiddleware, and api/routes/v1/auth.py decorates the login route with
@limiter.limit(login_limit). Separate instances would keep separate counters
and the limit would never trigger.

Counters live in process memory and are keyed by client address, so they
reset on restart and are not shared between workers.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_limit() -> str:
    """Current login limit string (e.g. "10/minute"), read from Settings on each check."""
    return get_settings().login_rate_limit
