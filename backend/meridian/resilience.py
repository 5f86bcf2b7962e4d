"""
Timeout, retry and rate limiting for external oracle and judge calls.

with_resilience() is the only path through which external calls are made.
An expired or failing call surfaces as OracleTimeout / OracleCallFailure
once the retry budget is spent; it never blocks forever. An OracleTimeout
raised by the call itself (a job that already waited out its own deadline)
is final and is never resubmitted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import structlog
from aiolimiter import AsyncLimiter

from .errors import InputValidationError, OperationCancelled, OracleCallFailure, OracleTimeout
from .scheduling import CancellationToken, yield_point

logger = structlog.get_logger("meridian.resilience")

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float

    def build(self) -> AsyncLimiter:
        return AsyncLimiter(self.max_calls, self.per_seconds)


@dataclass(slots=True, frozen=True)
class ResiliencePolicy:
    name: str = "oracle"
    timeout_seconds: float = 120.0
    max_retries: int = 2
    backoff_seconds: float = 1.0
    backoff_factor: float = 2.0
    max_backoff_seconds: float = 30.0
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    never_retry: tuple[type[BaseException], ...] = field(
        default_factory=lambda: (InputValidationError, OperationCancelled, OracleTimeout)
    )
    retry_timeouts: bool = True

    def backoff_for(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)."""
        return min(self.backoff_seconds * self.backoff_factor ** (attempt - 1), self.max_backoff_seconds)


async def _attempt(
    call: Callable[[], Awaitable[T]],
    policy: ResiliencePolicy,
    cancel_token: CancellationToken | None,
) -> T:
    """One attempt, bounded by the timeout and aborted if the token fires."""
    if cancel_token is None:
        return await asyncio.wait_for(call(), timeout=policy.timeout_seconds)

    call_task = asyncio.ensure_future(asyncio.wait_for(call(), timeout=policy.timeout_seconds))
    cancel_task = asyncio.ensure_future(cancel_token.wait())
    try:
        done, _ = await asyncio.wait({call_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        if call_task in done:
            return call_task.result()
        raise OperationCancelled(cancel_token.reason or "cancelled")
    finally:
        for task in (call_task, cancel_task):
            if not task.done():
                task.cancel()


async def with_resilience(
    call: Callable[[], Awaitable[T]],
    policy: ResiliencePolicy,
    limiter: AsyncLimiter | None = None,
    cancel_token: CancellationToken | None = None,
) -> T:
    """
    Run an external call with timeout, bounded retries and optional rate limit.

    Args:
        call: Zero-argument coroutine factory; invoked once per attempt
        policy: Timeout and retry settings
        limiter: Shared AsyncLimiter for rate-limited endpoints
        cancel_token: Checked before every attempt

    Returns:
        The call's result

    Raises:
        OracleTimeout: last attempt timed out
        OracleCallFailure: last attempt raised; an OracleCallFailure from the
            call keeps its own type
        OperationCancelled: caller cancelled between attempts
    """
    attempts = policy.max_retries + 1
    last_error: OracleCallFailure | None = None

    for attempt in range(1, attempts + 1):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        try:
            if limiter is not None:
                async with limiter:
                    return await _attempt(call, policy, cancel_token)
            return await _attempt(call, policy, cancel_token)
        except asyncio.TimeoutError:
            last_error = OracleTimeout(
                f"{policy.name} call timed out after {policy.timeout_seconds}s",
                details={"attempt": attempt, "timeout_seconds": policy.timeout_seconds},
            )
            if not policy.retry_timeouts:
                raise last_error from None
        except policy.never_retry:
            raise
        except OracleCallFailure as exc:
            last_error = exc
        except policy.retry_on as exc:
            last_error = OracleCallFailure(
                f"{policy.name} call failed: {exc}",
                details={"attempt": attempt, "error_type": type(exc).__name__},
            )
            last_error.__cause__ = exc

        logger.warning(
            "external_call_failed",
            call=policy.name,
            attempt=attempt,
            max_attempts=attempts,
            error=last_error.message,
        )
        if attempt < attempts:
            await yield_point(policy.backoff_for(attempt))

    raise last_error
