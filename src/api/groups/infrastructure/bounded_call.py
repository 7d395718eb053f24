"""Time-bounded calls to collaborators owned by other systems."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, TypeVar

import httpx
from sqlalchemy.exc import SQLAlchemyError

from groups.infrastructure.observability import ExternalServiceProbe
from groups.ports.exceptions import ExternalServiceUnavailableError

T = TypeVar("T")

# Failures that mean "the other side is unavailable", never a caller mistake
TRANSIENT_ERRORS = (SQLAlchemyError, httpx.HTTPError, OSError)


async def bounded_call(
    service: str,
    timeout_seconds: float,
    probe: ExternalServiceProbe,
    call: Callable[[], Awaitable[T]],
) -> T:
    """Await ``call()`` for at most ``timeout_seconds``.

    Raises:
        ExternalServiceUnavailableError: On timeout or a transient error
    """
    started = time.perf_counter()
    try:
        async with asyncio.timeout(timeout_seconds):
            result = await call()
    except TimeoutError as e:
        probe.call_timed_out(service=service, timeout_seconds=timeout_seconds)
        raise ExternalServiceUnavailableError(
            f"{service} did not answer within {timeout_seconds}s",
            service=service,
        ) from e
    except TRANSIENT_ERRORS as e:
        probe.call_failed(service=service, error=str(e))
        raise ExternalServiceUnavailableError(
            f"{service} is unavailable",
            service=service,
        ) from e

    probe.call_succeeded(
        service=service, duration_ms=(time.perf_counter() - started) * 1000
    )
    return result
