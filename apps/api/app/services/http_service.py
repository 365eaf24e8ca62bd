"""Retrying HTTP helper shared by the Stytch, Jira and AI clients."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = {429, 500, 502, 503, 504}


def _backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    delay = min(max_delay, base_delay * (2**attempt))
    if delay:
        delay += random.uniform(0, delay / 2)
    return delay


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    retry_statuses: set[int] | None = None,
) -> httpx.Response:
    """
    Call ``request_fn`` with exponential backoff.

    Transport errors and retryable statuses are retried up to
    ``max_attempts``. The last transport error is re-raised; the last
    response is returned whatever its status.
    """
    statuses = retry_statuses if retry_statuses is not None else DEFAULT_RETRY_STATUSES
    response: httpx.Response | None = None

    for attempt in range(max_attempts):
        last_attempt = attempt >= max_attempts - 1
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if last_attempt:
                raise
            logger.warning("HTTP request failed, retrying", exc_info=exc)
        else:
            if response.status_code not in statuses or last_attempt:
                return response
            logger.warning(
                "HTTP %s %s returned %s, retrying",
                response.request.method,
                response.request.url,
                response.status_code,
            )

        delay = _backoff_delay(attempt, base_delay, max_delay)
        if delay:
            await asyncio.sleep(delay)

    assert response is not None
    return response
