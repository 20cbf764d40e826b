"""
api/limiter.py -- The one slowapi Limiter for the process.

api/main.py mounts it (app.state.limiter + SlowAPIMiddleware) and
api/routes/v1/auth.py decorates POST /auth/login with it. Both must share
this instance: counters live in the Limiter's storage, so a second Limiter
would count separately and never trip.

Keyed by client IP. In-memory storage, so limits are per process.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Limit string for POST /auth/login, read from LOGIN_RATE_LIMIT at request time."""
    return get_settings().login_rate_limit
