"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
that apply per-route limits with @limiter.limit().

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

RATE_LIMIT_ENABLED=false switches every limit off (the test suite does this so
repeated logins across test modules are not throttled).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://", enabled=_settings.rate_limit_enabled)

LOGIN_RATE_LIMIT: str = _settings.login_rate_limit
