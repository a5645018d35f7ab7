"""
Bounded retry with backoff and escalating parameters
-----------------------------------------------------
A thin combinator over tenacity's AsyncRetrying used by both the
structuring stage (retry on short/truncated results, larger token budget
each attempt) and the translation stage (retry on 429/5xx with linear
backoff).

The operation receives an Attempt describing its position in the loop and
the escalated parameters for that position:

    async def call(attempt: Attempt) -> Result:
        return await backend.complete(..., max_tokens=attempt.params)

    result = await run_with_retry(
        call,
        max_attempts=3,
        escalate=lambda n: 3000 + (n - 1) * 1500,
        retry_on_result=lambda r: len(r.items) < target,
    )

When attempts run out the last result is returned, or the last exception
is re-raised.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    retry_if_result,
    retry_never,
    stop_after_attempt,
    wait_incrementing,
    wait_none,
)
from tenacity.wait import wait_base

T = TypeVar("T")


@dataclass(frozen=True)
class Attempt:
    """Position of a single call inside a retry loop."""

    number: int
    max_attempts: int
    params: Any = None

    @property
    def is_last(self) -> bool:
        return self.number >= self.max_attempts


def linear_backoff(delay: float) -> wait_base:
    """Wait delay * attempt_number seconds before each retry."""
    return wait_incrementing(start=delay, increment=delay)


def _last_outcome(retry_state: RetryCallState) -> Any:
    # Returns the final result, or re-raises the final exception.
    return retry_state.outcome.result()


async def run_with_retry(
    operation: Callable[[Attempt], Awaitable[T]],
    *,
    max_attempts: int,
    backoff: Optional[wait_base] = None,
    escalate: Optional[Callable[[int], Any]] = None,
    retry_on_exception: Optional[Callable[[BaseException], bool]] = None,
    retry_on_result: Optional[Callable[[T], bool]] = None,
) -> T:
    """
    Run operation up to max_attempts times.

    Args:
        operation:          Async callable taking an Attempt.
        max_attempts:       Hard cap on calls (>= 1).
        backoff:            tenacity wait strategy between attempts (default: none).
        escalate:           Maps attempt number -> parameters passed as Attempt.params.
        retry_on_exception: Exceptions for which this returns True are retried;
                            all others propagate immediately.
        retry_on_result:    Results for which this returns True are retried.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    counter = {"n": 0}

    async def _call() -> T:
        counter["n"] += 1
        number = counter["n"]
        params = escalate(number) if escalate is not None else None
        return await operation(Attempt(number=number, max_attempts=max_attempts, params=params))

    retry = retry_never
    if retry_on_exception is not None:
        retry = retry | retry_if_exception(retry_on_exception)
    if retry_on_result is not None:
        retry = retry | retry_if_result(retry_on_result)

    retryer = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=backoff if backoff is not None else wait_none(),
        retry=retry,
        retry_error_callback=_last_outcome,
        reraise=True,
    )
    return await retryer(_call)
