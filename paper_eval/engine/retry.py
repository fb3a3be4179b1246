"""Bounded retry helpers for outbound archival requests."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryDecision:
    """Whether to retry a failed attempt, after how long, and why it failed."""

    retry: bool
    delay: float
    error_type: str


def exponential_backoff(
    attempt: int,
    base_delay: float = 1.0,
    multiplier: float = 2.0,
    max_delay: float = 16.0,
) -> float:
    """Backoff delay for a 1-based attempt, capped at ``max_delay``."""
    return min(base_delay * (multiplier ** (attempt - 1)), max_delay)


def extract_status_code(exc: Exception) -> Optional[int]:
    response = getattr(exc, "response", None)
    if response is not None:
        status_code = getattr(response, "status_code", None)
        if isinstance(status_code, int):
            return status_code
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return status_code
    return None


def _retry_after(exc: Exception) -> Optional[float]:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    try:
        return float(headers.get("retry-after"))
    except (TypeError, ValueError):
        return None


def classify_http_exception(
    exc: Exception,
    attempt: int,
    *,
    base_delay: float = 1.0,
    max_delay: float = 16.0,
) -> RetryDecision:
    """Map an httpx failure onto a retry decision.

    Rate limits (429) and server errors retry with backoff, other client
    errors do not. Transport failures retry; anything else is a bug in the
    request and does not.
    """
    status_code = extract_status_code(exc)
    backoff = exponential_backoff(attempt, base_delay=base_delay, max_delay=max_delay)

    if status_code == 429:
        return RetryDecision(True, _retry_after(exc) or backoff, "rate_limit")
    if status_code is not None:
        if status_code in (401, 403):
            return RetryDecision(False, 0.0, "unauthorized")
        if 400 <= status_code < 500:
            return RetryDecision(False, 0.0, "invalid_request")
        return RetryDecision(True, backoff, "server_error")

    if isinstance(exc, httpx.TimeoutException):
        return RetryDecision(True, backoff, "timeout")
    if isinstance(exc, httpx.TransportError):
        return RetryDecision(True, backoff, "connectivity_error")

    return RetryDecision(False, 0.0, "unexpected_error")


def run_with_retries(
    attempt_fn: Callable[[int], T],
    *,
    max_attempts: int,
    classify_error: Callable[[Exception, int], RetryDecision] = classify_http_exception,
    sleep: Callable[[float], None] = time.sleep,
) -> Tuple[Optional[T], Optional[str], Optional[str], bool]:
    """Call ``attempt_fn`` up to ``max_attempts`` times.

    Returns:
        (result, error, error_type, retryable). On success the last three
        are ``None, None, False``; on failure ``retryable`` says whether the
        last error would have been retried given more attempts.
    """
    last_error: Optional[str] = None
    last_error_type: Optional[str] = None
    retryable = False

    for attempt in range(1, max_attempts + 1):
        try:
            return attempt_fn(attempt), None, None, False
        except Exception as exc:
            decision = classify_error(exc, attempt)
            last_error = str(exc) or type(exc).__name__
            last_error_type = decision.error_type
            retryable = decision.retry
            logger.warning(
                f"Attempt {attempt}/{max_attempts} failed ({decision.error_type}): {last_error}"
            )
            if not decision.retry or attempt >= max_attempts:
                break
            if decision.delay:
                sleep(decision.delay)

    return None, last_error or "All retry attempts exhausted", last_error_type, retryable
