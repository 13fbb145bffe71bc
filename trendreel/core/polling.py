"""
Bounded polling for long-running external jobs.

A render job is submitted once and then checked at a fixed interval until it
reports done or the attempt budget runs out. The sleep function is injected
so tests can drive the loop without waiting.

Usage:
    status = await poll_until_done(
        functools.partial(renderer.poll, job),
        interval=10.0,
        max_attempts=40,
    )
"""

import asyncio
from typing import Awaitable, Callable, Protocol, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from trendreel.core.exceptions import RenderTimeoutError

logger = structlog.get_logger(__name__)


class PollStatus(Protocol):
    """Anything with a boolean ``done`` attribute."""

    done: bool


S = TypeVar("S", bound=PollStatus)

SleepFn = Callable[[float], Awaitable[None]]


def _is_pending(status: PollStatus) -> bool:
    return not status.done


def _log_pending(retry_state: RetryCallState) -> None:
    logger.debug(
        "poll_pending",
        attempt=retry_state.attempt_number,
        next_wait=retry_state.next_action.sleep if retry_state.next_action else None,
    )


async def poll_until_done(
    check: Callable[[], Awaitable[S]],
    *,
    interval: float,
    max_attempts: int,
    sleep: SleepFn = asyncio.sleep,
) -> S:
    """
    Call ``check`` until it returns a status with ``done`` set.

    The first check runs immediately; every later one waits ``interval``
    seconds. Exceptions raised by ``check`` end polling and propagate
    unchanged.

    Args:
        check: Coroutine factory returning the current job status.
        interval: Seconds between checks.
        max_attempts: Total number of checks allowed.
        sleep: Awaitable sleep, replaceable in tests.

    Returns:
        The first status whose ``done`` is true.

    Raises:
        RenderTimeoutError: If the job is still pending after the last check.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    async def _attempt() -> S:
        return await check()

    retrying = AsyncRetrying(
        retry=retry_if_result(_is_pending),
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(interval),
        sleep=sleep,
        before_sleep=_log_pending,
    )
    try:
        return await retrying(_attempt)
    except RetryError:
        logger.warning("poll_exhausted", attempts=max_attempts, interval=interval)
        raise RenderTimeoutError(max_attempts, interval)
