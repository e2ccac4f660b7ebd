# itasks/middleware/rate_limiting.py - Shared slowapi limiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from itasks.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.DEFAULT_RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
)
