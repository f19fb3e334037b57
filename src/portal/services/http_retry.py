"""Retry with exponential backoff for calls to the portal API and BrasilAPI.

Only reads are retried. A ``RetryPolicy`` names the exceptions and HTTP
status codes that count as transient; ``check_status`` turns such a response
into ``RetryableHTTPError`` so ``retry_call`` can try again.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import requests.exceptions

T = TypeVar("T")

logger = logging.getLogger(__name__)

_TRANSIENT_STATUS = frozenset({429, 502, 503, 504})


class RetryableHTTPError(requests.exceptions.HTTPError):
    """Response status the policy treats as transient; ``response`` holds the last reply."""


@dataclass(frozen=True)
class RetryPolicy:
    name: str
    max_attempts: int
    base_delay: float = 0.0
    max_delay: float = 0.0
    backoff_factor: float = 2.0
    jitter: float = 0.25
    retryable_exceptions: tuple[type[Exception], ...] = ()
    retryable_status_codes: frozenset[int] = field(default_factory=frozenset)


API_READ = RetryPolicy(
    name="api-read",
    max_attempts=3,
    base_delay=0.5,
    max_delay=5.0,
    retryable_exceptions=(
        requests.exceptions.ConnectionError,
        requests.exceptions.Timeout,
        RetryableHTTPError,
    ),
    retryable_status_codes=_TRANSIENT_STATUS,
)

# POST/PATCH/DELETE: one attempt, a timeout is reported instead of replayed
API_WRITE = RetryPolicy(name="api-write", max_attempts=1, jitter=0.0)

# BrasilAPI allows a few requests per minute per IP
CNPJ_LOOKUP = RetryPolicy(
    name="cnpj-lookup",
    max_attempts=3,
    base_delay=2.0,
    max_delay=10.0,
    retryable_exceptions=(requests.exceptions.ConnectionError, RetryableHTTPError),
    retryable_status_codes=_TRANSIENT_STATUS,
)


def check_status(resp: Any, policy: RetryPolicy, what: str) -> Any:
    """Return *resp*, or raise RetryableHTTPError when its status is transient for *policy*."""
    if resp.status_code in policy.retryable_status_codes:
        raise RetryableHTTPError(f"{what} ({resp.status_code})", response=resp)
    return resp


def _calc_delay(attempt: int, policy: RetryPolicy) -> float:
    """Backoff before retry number *attempt* + 1 (0 = after the first failure)."""
    delay = min(policy.base_delay * (policy.backoff_factor**attempt), policy.max_delay)
    spread = delay * policy.jitter
    return max(0.0, delay + random.uniform(-spread, spread))


def _retry_after(exc: Exception, policy: RetryPolicy) -> float | None:
    """Seconds requested by a ``Retry-After`` header, capped at the policy's max delay."""
    resp = getattr(exc, "response", None)
    if resp is None:
        return None
    value = (getattr(resp, "headers", None) or {}).get("Retry-After", "")
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return min(max(seconds, 0.0), policy.max_delay)


def retry_call(
    func: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep_func: Callable[[float], object] = time.sleep,
) -> T:
    """Run *func()* up to ``policy.max_attempts`` times; the last failure propagates."""
    attempt = 0
    while True:
        try:
            return func()
        except policy.retryable_exceptions as exc:
            attempt += 1
            if attempt >= policy.max_attempts:
                raise
            delay = _retry_after(exc, policy)
            if delay is None:
                delay = _calc_delay(attempt - 1, policy)
            logger.warning(
                "[%s] attempt %d/%d failed with %s, retrying in %.1fs",
                policy.name,
                attempt,
                policy.max_attempts,
                type(exc).__name__,
                delay,
            )
            sleep_func(delay)
