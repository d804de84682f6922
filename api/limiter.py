"""
api/limiter.py -- Shared slowapi rate limiter and the auth route limits.

One Limiter instance is shared by api/main.py (middleware + state) and the
auth routes (@limiter.limit). Separate instances would each keep their own
counters and the limits would never trigger.

Limits are passed to @limiter.limit() as callables so slowapi reads them
from Settings when a request arrives, not at import time.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_limit() -> str:
    """[H2] Brute-force ceiling for POST /auth/login, per client IP."""
    return get_settings().login_rate_limit


def refresh_limit() -> str:
    return get_settings().refresh_rate_limit
