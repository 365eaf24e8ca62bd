"""Rate limiting configuration for the API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://" if IS_TESTING else settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED and not IS_TESTING,
)

AUTH_LIMIT = f"{settings.RATE_LIMIT_AUTH}/minute"
