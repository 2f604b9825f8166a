"""Retry policy for backend calls."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from infralayer.core.errors import TransientBackendError, is_transient

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for transient backend errors."""

    max_attempts: int = 4
    timeout: float = 300.0
    multiplier: float = 1.0
    max_wait: float = 30.0

    @classmethod
    def from_settings(cls, settings: Any) -> RetryPolicy:
        return cls(
            max_attempts=settings.max_attempts,
            timeout=settings.operation_timeout,
            multiplier=settings.backoff_multiplier,
            max_wait=settings.backoff_max,
        )


async def call_with_timeout(
    func: Callable[[], Awaitable[T]],
    timeout: float,
    details: dict[str, Any],
) -> T:
    """Run one backend call; expiry becomes a TransientBackendError."""
    try:
        return await asyncio.wait_for(func(), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise TransientBackendError(f"Backend call timed out after {timeout}s", details) from e


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    details: dict[str, Any],
    cancel_event: Optional[asyncio.Event] = None,
    on_attempt: Optional[Callable[[int], None]] = None,
) -> T:
    """
    Call ``func`` with a timeout, retrying transient failures.

    Retries stop early once ``cancel_event`` is set; the last error is re-raised.
    """

    def _log_retry(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            "backend_call_retrying",
            attempt=state.attempt_number,
            max_attempts=policy.max_attempts,
            error=str(error),
            **details,
        )

    stop = stop_after_attempt(policy.max_attempts)
    if cancel_event is not None:
        stop = stop | stop_when_event_set(cancel_event)

    retrying = AsyncRetrying(
        retry=retry_if_exception(is_transient),
        stop=stop,
        wait=wait_exponential(multiplier=policy.multiplier, max=policy.max_wait),
        before_sleep=_log_retry,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            if on_attempt is not None:
                on_attempt(attempt.retry_state.attempt_number)
            return await call_with_timeout(func, policy.timeout, details)
    raise AssertionError("unreachable")  # pragma: no cover
