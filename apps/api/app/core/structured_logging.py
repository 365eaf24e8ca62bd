"""Structured logging helpers."""

import logging
from typing import Any

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    """Configure root logging once from LOG_LEVEL."""
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)


def build_log_context(
    *,
    user_id: str | None = None,
    org_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict for ``extra=``. Empty values are dropped."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if org_id:
        context["org_id"] = org_id
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
