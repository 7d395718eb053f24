"""Bounded retry policies built on tenacity.

Two policies exist: whole-operation retries for structural mutations that
lost a concurrency race, and backoff retries for read calls to external
stores. Terminal errors (cycles, missing parents, forbidden) are never
matched by either policy.
"""

from __future__ import annotations

from typing import Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from groups.ports.exceptions import (
    ConflictRetryableError,
    ExternalServiceUnavailableError,
)

# Upper bound on any single backoff sleep, in seconds
MAX_BACKOFF_SECONDS = 5.0

OnRetry = Callable[[int, BaseException], None]


def _notify(on_retry: OnRetry | None) -> Callable[[RetryCallState], None] | None:
    if on_retry is None:
        return None

    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome is not None else None
        if error is not None:
            on_retry(state.attempt_number, error)

    return before_sleep


def conflict_retrying(
    attempts: int,
    on_retry: OnRetry | None = None,
) -> AsyncRetrying:
    """Retry policy for a whole structural mutation.

    Each attempt must re-read, re-check and re-write inside a fresh
    transaction. After ``attempts`` the last ConflictRetryableError is
    re-raised to the caller.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.05, max=1.0),
        retry=retry_if_exception_type(ConflictRetryableError),
        before_sleep=_notify(on_retry),
        reraise=True,
    )


def external_read_retrying(
    attempts: int,
    backoff_seconds: float,
    on_retry: OnRetry | None = None,
) -> AsyncRetrying:
    """Retry policy for reads from an external store.

    Only ExternalServiceUnavailableError is retried; after ``attempts`` it
    is re-raised.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=backoff_seconds, max=MAX_BACKOFF_SECONDS),
        retry=retry_if_exception_type(ExternalServiceUnavailableError),
        before_sleep=_notify(on_retry),
        reraise=True,
    )
