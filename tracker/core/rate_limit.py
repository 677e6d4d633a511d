"""Rate limiter shared by the public auth and access-request endpoints."""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from tracker.core.config import settings

# Keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
