import httpx
import pytest

from paper_eval.engine.retry import (
    RetryDecision,
    classify_http_exception,
    exponential_backoff,
    extract_status_code,
    run_with_retries,
)

ENDPOINT = "https://api.github.com/repos/org/evals/dispatches"


class _ExcWithStatus(Exception):
    def __init__(self, status_code: int, message: str = "error") -> None:
        super().__init__(message)
        self.status_code = status_code


def _status_error(status_code: int, headers=None) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", ENDPOINT)
    response = httpx.Response(status_code, headers=headers, request=request)
    return httpx.HTTPStatusError("failed", request=request, response=response)


def test_backoff_caps_value() -> None:
    assert exponential_backoff(1, base_delay=1.0, multiplier=2.0, max_delay=16.0) == 1.0
    assert exponential_backoff(3, base_delay=1.0, multiplier=2.0, max_delay=16.0) == 4.0
    assert exponential_backoff(10, base_delay=1.0, multiplier=2.0, max_delay=16.0) == 16.0


def test_extract_status_code() -> None:
    assert extract_status_code(_ExcWithStatus(429)) == 429
    assert extract_status_code(_status_error(502)) == 502
    assert extract_status_code(ValueError("x")) is None


def test_rate_limit_honours_retry_after() -> None:
    decision = classify_http_exception(_status_error(429, headers={"retry-after": "7"}), attempt=1)
    assert decision == RetryDecision(retry=True, delay=7.0, error_type="rate_limit")


def test_rate_limit_without_header_backs_off() -> None:
    decision = classify_http_exception(_ExcWithStatus(429), attempt=3)
    assert decision == RetryDecision(retry=True, delay=4.0, error_type="rate_limit")


@pytest.mark.parametrize(
    "status_code, error_type",
    [(401, "unauthorized"), (403, "unauthorized"), (404, "invalid_request"), (422, "invalid_request")],
)
def test_client_errors_do_not_retry(status_code, error_type) -> None:
    decision = classify_http_exception(_ExcWithStatus(status_code), attempt=1)
    assert decision == RetryDecision(retry=False, delay=0.0, error_type=error_type)


def test_server_errors_retry() -> None:
    decision = classify_http_exception(_ExcWithStatus(503, "service unavailable"), attempt=2)
    assert decision.retry is True
    assert decision.error_type == "server_error"
    assert decision.delay == 2.0


def test_transport_errors_retry() -> None:
    request = httpx.Request("POST", ENDPOINT)
    decision = classify_http_exception(httpx.ConnectError("refused", request=request), attempt=1)
    assert decision == RetryDecision(True, 1.0, "connectivity_error")

    decision = classify_http_exception(httpx.ReadTimeout("slow", request=request), attempt=2)
    assert decision == RetryDecision(True, 2.0, "timeout")


def test_unknown_errors_do_not_retry() -> None:
    decision = classify_http_exception(ValueError("bad body"), attempt=1)
    assert decision == RetryDecision(False, 0.0, "unexpected_error")


def test_run_with_retries_succeeds_after_retryable_error() -> None:
    delays = []
    attempts = []

    def attempt_fn(attempt: int) -> str:
        attempts.append(attempt)
        if attempt < 3:
            raise httpx.ConnectError("refused")
        return "ok"

    result, error, error_type, retryable = run_with_retries(attempt_fn, max_attempts=3, sleep=delays.append)

    assert (result, error, error_type, retryable) == ("ok", None, None, False)
    assert attempts == [1, 2, 3]
    assert delays == [1.0, 2.0]


def test_run_with_retries_stops_on_non_retryable_error() -> None:
    attempts = []

    def attempt_fn(attempt: int) -> str:
        attempts.append(attempt)
        raise _ExcWithStatus(400, "bad request")

    result, error, error_type, retryable = run_with_retries(attempt_fn, max_attempts=5, sleep=lambda _: None)

    assert result is None
    assert error == "bad request"
    assert error_type == "invalid_request"
    assert retryable is False
    assert attempts == [1]


def test_run_with_retries_exhausts_attempts() -> None:
    delays = []

    def attempt_fn(attempt: int) -> str:
        raise _ExcWithStatus(500, "boom")

    result, error, error_type, retryable = run_with_retries(attempt_fn, max_attempts=3, sleep=delays.append)

    assert result is None
    assert error_type == "server_error"
    assert retryable is True
    assert delays == [1.0, 2.0]
