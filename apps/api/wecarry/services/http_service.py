"""Outbound HTTP with retry/backoff (Resend, Google and OIDC token endpoints)."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = {429, 500, 502, 503, 504}


def _retry_after(response: httpx.Response) -> float | None:
    """Seconds from a numeric Retry-After header, if the server sent one."""
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        # HTTP-date form; fall back to our own backoff
        return None


def _backoff(attempt: int, base_delay: float, max_delay: float, hint: float | None = None) -> float:
    if hint is not None:
        return min(max_delay, hint)
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
    label: str = "http",
) -> httpx.Response:
    """
    Call request_fn until it returns a non-retryable response.

    Transport errors are retried and re-raised on the final attempt. A
    retryable status on the final attempt is returned to the caller, which
    decides how to report it. Retry-After is honoured up to max_delay.
    """
    statuses = retry_statuses or DEFAULT_RETRY_STATUSES

    for attempt in range(1, max_attempts + 1):
        last = attempt == max_attempts
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if last:
                raise
            logger.warning("%s request failed (attempt %d/%d), retrying", label, attempt, max_attempts, exc_info=exc)
            wait = _backoff(attempt - 1, base_delay, max_delay)
        else:
            if response.status_code not in statuses or last:
                return response
            logger.warning(
                "%s request returned %s (attempt %d/%d), retrying",
                label,
                response.status_code,
                attempt,
                max_attempts,
            )
            wait = _backoff(attempt - 1, base_delay, max_delay, _retry_after(response))

        if wait:
            await asyncio.sleep(wait)

    raise RuntimeError("request_with_retries needs max_attempts >= 1")
