"""Tests for error classification and the resilient invoker.

WHY: Retry is the one place where a wrong decision either hammers a
rate-limited collaborator or hides a transient blip from the user. The
attempt counts and the doubling wait sequence must be exact.

HOW: The invoker gets a fake async ``sleep`` that records waits instead
of sleeping. Operations are plain callables that fail a scripted number
of times.

RULES:
- No test actually sleeps
- Attempt counts are asserted exactly
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from transcript_editor.api.retry import RECENT_WAITS_KEPT, ResilientInvoker, RetryPolicy
from transcript_editor.errors import (
    CollaboratorAPIError,
    ErrorKind,
    FileTooLargeError,
    InvalidCredentialError,
    MalformedResponseError,
    OverloadedError,
    RateLimitedError,
    classify_error,
)


class _Flaky:
    """Callable that raises ``errors`` in order, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def _make_invoker(base_delay=1.0):
    slept = []

    async def fake_sleep(seconds):
        slept.append(seconds)

    invoker = ResilientInvoker(policy=RetryPolicy(base_delay=base_delay), sleep=fake_sleep)
    return invoker, slept


# ---------------------------------------------------------------------------
# classify_error
# ---------------------------------------------------------------------------


class TestClassifyError:
    def test_package_errors_know_their_kind(self):
        assert classify_error(RateLimitedError()) is ErrorKind.TRANSIENT_CAPACITY
        assert classify_error(OverloadedError()) is ErrorKind.TRANSIENT_CAPACITY
        assert classify_error(InvalidCredentialError("bad")) is ErrorKind.CREDENTIAL
        assert classify_error(FileTooLargeError(10, 5)) is ErrorKind.INPUT_VALIDATION
        assert classify_error(MalformedResponseError("x")) is ErrorKind.MALFORMED_RESPONSE
        assert classify_error(CollaboratorAPIError(500, "boom")) is ErrorKind.UNCLASSIFIED

    def test_foreign_error_with_status_attribute(self):
        exc = RuntimeError("server said no")
        exc.status = 429
        assert classify_error(exc) is ErrorKind.TRANSIENT_CAPACITY

    def test_httpx_status_error_uses_response_status(self):
        request = httpx.Request("POST", "https://example.test")
        response = httpx.Response(503, request=request)
        exc = httpx.HTTPStatusError("unavailable", request=request, response=response)
        assert classify_error(exc) is ErrorKind.TRANSIENT_CAPACITY

    def test_message_markers(self):
        assert classify_error(RuntimeError("429 Too Many Requests")) is ErrorKind.TRANSIENT_CAPACITY
        assert classify_error(RuntimeError("RESOURCE_EXHAUSTED")) is ErrorKind.TRANSIENT_CAPACITY
        assert classify_error(RuntimeError("Quota exceeded")) is ErrorKind.TRANSIENT_CAPACITY

    def test_everything_else_is_unclassified(self):
        assert classify_error(KeyError("x")) is ErrorKind.UNCLASSIFIED


# ---------------------------------------------------------------------------
# RetryPolicy
# ---------------------------------------------------------------------------


class TestRetryPolicy:
    def test_backoff_doubles(self):
        policy = RetryPolicy(base_delay=5.0)
        assert [policy.backoff(i) for i in range(4)] == [5.0, 10.0, 20.0, 40.0]

    def test_decide_stops_at_last_attempt(self):
        policy = RetryPolicy(base_delay=1.0)
        assert policy.decide(RateLimitedError(), 0, 3) == 1.0
        assert policy.decide(RateLimitedError(), 1, 3) == 2.0
        assert policy.decide(RateLimitedError(), 2, 3) is None

    def test_decide_does_not_retry_non_transient(self):
        assert RetryPolicy().decide(InvalidCredentialError("bad"), 0, 3) is None

    def test_jitter_is_additive(self):
        policy = RetryPolicy(base_delay=1.0, jitter=0.5)
        for attempt in range(3):
            wait = policy.backoff(attempt)
            assert 2 ** attempt <= wait <= 2 ** attempt + 0.5

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=-1)


# ---------------------------------------------------------------------------
# ResilientInvoker
# ---------------------------------------------------------------------------


class TestResilientInvoker:
    def test_succeeds_on_third_attempt(self):
        invoker, slept = _make_invoker()
        op = _Flaky([RateLimitedError(), RateLimitedError()])

        result = asyncio.run(invoker.invoke(op, max_retries=3))

        assert result == "ok"
        assert op.calls == 3
        assert slept == [1.0, 2.0]
        assert list(invoker.waits) == slept

    def test_recorded_waits_are_bounded(self):
        invoker, _ = _make_invoker()

        async def scenario():
            for _ in range(RECENT_WAITS_KEPT + 5):
                await invoker.invoke(_Flaky([RateLimitedError()]))

        asyncio.run(scenario())

        assert len(invoker.waits) == RECENT_WAITS_KEPT
        assert set(invoker.waits) == {1.0}

    def test_always_rate_limited_gives_up_after_limit(self):
        invoker, slept = _make_invoker()
        final = RateLimitedError("still busy")
        op = _Flaky([RateLimitedError(), RateLimitedError(), final, RateLimitedError()])

        with pytest.raises(RateLimitedError) as excinfo:
            asyncio.run(invoker.invoke(op, max_retries=3))

        assert excinfo.value is final
        assert op.calls == 3
        assert slept == [1.0, 2.0]

    def test_non_retryable_error_propagates_immediately(self):
        invoker, slept = _make_invoker()
        op = _Flaky([InvalidCredentialError("bad key")])

        with pytest.raises(InvalidCredentialError):
            asyncio.run(invoker.invoke(op, max_retries=3))

        assert op.calls == 1
        assert slept == []

    def test_overloaded_is_retried(self):
        invoker, _ = _make_invoker()
        op = _Flaky([OverloadedError()])
        assert asyncio.run(invoker.invoke(op)) == "ok"
        assert op.calls == 2

    def test_awaits_coroutine_operations(self):
        invoker, _ = _make_invoker()
        calls = []

        async def op():
            calls.append(1)
            if len(calls) == 1:
                raise RateLimitedError()
            return 42

        assert asyncio.run(invoker.invoke(op)) == 42
        assert len(calls) == 2

    def test_on_retry_callback(self):
        seen = []

        async def no_sleep(_):
            return None

        invoker = ResilientInvoker(
            policy=RetryPolicy(base_delay=2.0),
            sleep=no_sleep,
            on_retry=lambda attempt, wait, exc: seen.append((attempt, wait)),
        )
        asyncio.run(invoker.invoke(_Flaky([RateLimitedError()])))
        assert seen == [(0, 2.0)]

    def test_limit_below_one_rejected(self):
        invoker, _ = _make_invoker()
        with pytest.raises(ValueError):
            asyncio.run(invoker.invoke(lambda: None, max_retries=0))
