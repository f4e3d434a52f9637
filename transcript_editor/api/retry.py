"""Bounded retry with exponential backoff for collaborator calls.

WHY: The inference collaborator rate-limits (HTTP 429, quota exhausted)
and sheds load (HTTP 503) routinely. Those failures usually clear after
a short wait; every other failure (bad input, bad key, other 4xx) will
not, and retrying it only delays the error the user needs to see.

HOW: RetryPolicy is a small, injectable decision function:
(error, attempt index) → wait in seconds, or None to give up. It uses
classify_error() so any exception type can be judged. ResilientInvoker
runs a zero-argument operation, consults the policy after each failure,
sleeps via an injectable async ``sleep`` and tries again.

RULES:
- At most ``max_retries`` attempts in total
- Only TRANSIENT_CAPACITY failures are retried
- Wait after failed attempt i (0-indexed) is base_delay * 2**i, plus
  optional non-negative jitter; the doubling progression is preserved
- Every retry is logged with the attempt index and the wait time
- The last failure is re-raised unchanged
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, Deque, Optional, TypeVar

from transcript_editor.config import RETRY_BASE_DELAY_S, RETRY_MAX_ATTEMPTS
from transcript_editor.errors import ErrorKind, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Bound on ResilientInvoker.waits.
RECENT_WAITS_KEPT = 50

Sleep = Callable[[float], Awaitable[Any]]
Classifier = Callable[[BaseException], ErrorKind]


class RetryPolicy:
    """Decides whether and how long to wait before another attempt.

    Args:
        base_delay: Wait after the first failed attempt, in seconds.
        classify: Maps an exception to an ErrorKind.
        jitter: Upper bound of a uniform random delay added to each wait.
    """

    retryable_kinds = frozenset({ErrorKind.TRANSIENT_CAPACITY})

    def __init__(
        self,
        base_delay: float = RETRY_BASE_DELAY_S,
        classify: Classifier = classify_error,
        jitter: float = 0.0,
    ) -> None:
        if base_delay < 0 or jitter < 0:
            raise ValueError("base_delay and jitter must be non-negative")
        self.base_delay = base_delay
        self.classify = classify
        self.jitter = jitter

    def backoff(self, attempt: int) -> float:
        """Wait before the attempt following failed attempt ``attempt``."""
        delay = self.base_delay * (2 ** attempt)
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return delay

    def decide(self, error: BaseException, attempt: int, max_retries: int) -> Optional[float]:
        """Return the wait before retrying, or None to propagate ``error``."""
        if attempt >= max_retries - 1:
            return None
        if self.classify(error) not in self.retryable_kinds:
            return None
        return self.backoff(attempt)


class ResilientInvoker:
    """Runs collaborator operations under a RetryPolicy.

    WHY: Retry logic lives in one explicit, testable place instead of
    being buried inside each request helper.

    HOW: ``invoke(operation)`` calls the operation, awaiting it if it
    returns an awaitable. On failure the policy picks a wait; the
    invoker sleeps and loops, or re-raises. ``waits`` records the
    most recent RECENT_WAITS_KEPT waits actually taken, which tests and
    diagnostics can inspect.

    RULES:
    - ``sleep`` defaults to asyncio.sleep; inject a fake in tests
    - ``on_retry`` (optional) is called as on_retry(attempt, wait, error)
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
        default_max_retries: int = RETRY_MAX_ATTEMPTS,
        on_retry: Optional[Callable[[int, float, BaseException], None]] = None,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self.default_max_retries = default_max_retries
        self._on_retry = on_retry
        self.waits: Deque[float] = deque(maxlen=RECENT_WAITS_KEPT)

    async def invoke(
        self,
        operation: Callable[[], Any],
        max_retries: Optional[int] = None,
    ) -> Any:
        """Execute ``operation`` with bounded retry.

        Args:
            operation: Zero-argument callable; may be sync or return an awaitable.
            max_retries: Total attempt ceiling (default: default_max_retries).

        Returns:
            Whatever the operation returns on its first successful attempt.
        """
        limit = max_retries if max_retries is not None else self.default_max_retries
        if limit < 1:
            raise ValueError("max_retries must be at least 1")

        attempt = 0
        while True:
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
                return result
            except Exception as exc:
                wait = self.policy.decide(exc, attempt, limit)
                if wait is None:
                    if attempt:
                        logger.error(
                            "Giving up after %d attempt(s): %s", attempt + 1, exc
                        )
                    raise
                logger.warning(
                    "Attempt %d/%d failed (%s); retrying in %.1fs",
                    attempt + 1, limit, exc, wait,
                )
                self.waits.append(wait)
                if self._on_retry:
                    self._on_retry(attempt, wait, exc)
                await self._sleep(wait)
                attempt += 1
