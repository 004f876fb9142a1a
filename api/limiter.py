"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and the route
modules that apply per-route limits with @limiter.limit().

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

LOGIN_RATE_LIMIT is resolved once at import time and passed as a plain
string. SlowAPIMiddleware only enforces static limits; a callable limit is
registered as dynamic and skipped by the middleware.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Applies to POST /login and POST /register.
LOGIN_RATE_LIMIT: str = get_settings().login_rate_limit
