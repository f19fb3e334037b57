from __future__ import annotations

import pytest
import requests.exceptions

from portal.services.http_retry import (
    API_READ,
    API_WRITE,
    CNPJ_LOOKUP,
    RetryableHTTPError,
    RetryPolicy,
    _calc_delay,
    check_status,
    retry_call,
)


class TestRetryCall:
    def test_success_first_attempt(self):
        result = retry_call(lambda: 42, API_READ, sleep_func=lambda _: None)
        assert result == 42

    def test_retries_connection_error_then_succeeds(self):
        calls = []

        def func():
            calls.append(1)
            if len(calls) < 2:
                raise requests.exceptions.ConnectionError("reset")
            return "ok"

        result = retry_call(func, API_READ, sleep_func=lambda _: None)
        assert result == "ok"
        assert len(calls) == 2

    def test_exhausts_retries_and_reraises(self):
        def func():
            raise requests.exceptions.ConnectionError("down")

        with pytest.raises(requests.exceptions.ConnectionError, match="down"):
            retry_call(func, API_READ, sleep_func=lambda _: None)

    def test_does_not_retry_non_retryable(self):
        calls = []

        def func():
            calls.append(1)
            raise RuntimeError("fatal")

        with pytest.raises(RuntimeError, match="fatal"):
            retry_call(func, API_READ, sleep_func=lambda _: None)
        assert len(calls) == 1

    def test_retries_retryable_http_error(self):
        calls = []

        def func():
            calls.append(1)
            if len(calls) < 3:
                raise RetryableHTTPError("503")
            return "recovered"

        result = retry_call(func, API_READ, sleep_func=lambda _: None)
        assert result == "recovered"
        assert len(calls) == 3

    def test_backoff_delays_increase(self):
        delays: list[float] = []

        def func():
            if len(delays) < 2:
                raise requests.exceptions.ConnectionError("err")
            return "done"

        result = retry_call(func, API_READ, sleep_func=delays.append)
        assert result == "done"
        assert len(delays) == 2
        assert delays[1] > delays[0]

    def test_delay_capped_at_max(self):
        policy = RetryPolicy(
            name="test",
            max_attempts=6,
            base_delay=5.0,
            max_delay=8.0,
            backoff_factor=3.0,
            jitter=0.0,
            retryable_exceptions=(requests.exceptions.ConnectionError,),
        )
        delays: list[float] = []

        def func():
            if len(delays) < 5:
                raise requests.exceptions.ConnectionError("err")
            return "done"

        retry_call(func, policy, sleep_func=delays.append)
        for d in delays:
            assert d <= policy.max_delay


class TestApiReadPolicy:
    def test_retries_read_timeout(self):
        calls = []

        def func():
            calls.append(1)
            if len(calls) < 2:
                raise requests.exceptions.ReadTimeout("read timed out")
            return "ok"

        assert retry_call(func, API_READ, sleep_func=lambda _: None) == "ok"

    def test_retryable_status_codes(self):
        assert API_READ.retryable_status_codes == frozenset({429, 502, 503, 504})

    def test_max_attempts(self):
        assert API_READ.max_attempts == 3


class TestApiWritePolicy:
    def test_sent_once(self):
        calls = []

        def func():
            calls.append(1)
            raise requests.exceptions.ConnectionError("reset")

        with pytest.raises(requests.exceptions.ConnectionError):
            retry_call(func, API_WRITE, sleep_func=lambda _: None)
        assert len(calls) == 1

    def test_no_retryable_status_codes(self):
        assert API_WRITE.retryable_status_codes == frozenset()


class TestCnpjLookupPolicy:
    def test_does_not_retry_read_timeout(self):
        calls = []

        def func():
            calls.append(1)
            raise requests.exceptions.ReadTimeout("read timed out")

        with pytest.raises(requests.exceptions.ReadTimeout):
            retry_call(func, CNPJ_LOOKUP, sleep_func=lambda _: None)
        assert len(calls) == 1

    def test_retries_rate_limit(self):
        calls = []

        def func():
            calls.append(1)
            if len(calls) < 2:
                raise RetryableHTTPError("429")
            return "ok"

        assert retry_call(func, CNPJ_LOOKUP, sleep_func=lambda _: None) == "ok"


class TestCalcDelay:
    def test_exponential_growth(self):
        policy = RetryPolicy(
            name="test",
            max_attempts=5,
            base_delay=1.0,
            max_delay=100.0,
            backoff_factor=2.0,
            jitter=0.0,
            retryable_exceptions=(),
        )
        assert _calc_delay(0, policy) == pytest.approx(1.0)
        assert _calc_delay(1, policy) == pytest.approx(2.0)
        assert _calc_delay(2, policy) == pytest.approx(4.0)

    def test_capped_at_max_delay(self):
        policy = RetryPolicy(
            name="test",
            max_attempts=5,
            base_delay=10.0,
            max_delay=15.0,
            backoff_factor=2.0,
            jitter=0.0,
            retryable_exceptions=(),
        )
        assert _calc_delay(3, policy) == pytest.approx(15.0)

    def test_jitter_within_bounds(self):
        policy = RetryPolicy(
            name="test",
            max_attempts=5,
            base_delay=4.0,
            max_delay=100.0,
            backoff_factor=1.0,
            jitter=0.25,
            retryable_exceptions=(),
        )
        for _ in range(100):
            assert 3.0 <= _calc_delay(0, policy) <= 5.0


class TestCheckStatus:
    def test_passes_through_final_status(self, fake_response):
        resp = fake_response(404)
        assert check_status(resp, API_READ, "GET /x") is resp

    def test_raises_for_transient_status(self, fake_response):
        resp = fake_response(503)
        with pytest.raises(RetryableHTTPError, match=r"GET /x \(503\)") as exc_info:
            check_status(resp, API_READ, "GET /x")
        assert exc_info.value.response is resp

    def test_writes_never_flagged(self, fake_response):
        resp = fake_response(503)
        assert check_status(resp, API_WRITE, "POST /x") is resp


class TestRetryAfter:
    def test_header_overrides_backoff(self, fake_response):
        delays: list[float] = []
        resp = fake_response(429, headers={"Retry-After": "3"})

        def func():
            if not delays:
                raise RetryableHTTPError("429", response=resp)
            return "ok"

        assert retry_call(func, API_READ, sleep_func=delays.append) == "ok"
        assert delays == [3.0]

    def test_header_capped(self, fake_response):
        delays: list[float] = []
        resp = fake_response(429, headers={"Retry-After": "120"})

        def func():
            if not delays:
                raise RetryableHTTPError("429", response=resp)
            return "ok"

        retry_call(func, CNPJ_LOOKUP, sleep_func=delays.append)
        assert delays == [CNPJ_LOOKUP.max_delay]

    def test_unparseable_header_uses_backoff(self, fake_response):
        delays: list[float] = []
        resp = fake_response(503, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"})

        def func():
            if not delays:
                raise RetryableHTTPError("503", response=resp)
            return "ok"

        retry_call(func, API_READ, sleep_func=delays.append)
        assert 0.375 <= delays[0] <= 0.625
