"""Shared engine helpers."""

from .retry import RetryDecision, classify_http_exception, exponential_backoff, run_with_retries

__all__ = [
    "RetryDecision",
    "classify_http_exception",
    "exponential_backoff",
    "run_with_retries",
]
