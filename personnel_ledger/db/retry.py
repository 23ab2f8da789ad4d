"""Retry-once policy for optimistic version checks."""

import functools
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import structlog
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt

from personnel_ledger.errors import ConcurrentModification

logger = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


def retry_on_conflict(
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[T]]:
    """Retry a read-check-write operation once after ConcurrentModification.

    The wrapped coroutine must re-read the records it checks on every call.
    A second conflict propagates to the caller.
    """

    def log_conflict(retry_state: RetryCallState) -> None:
        logger.warning(
            "version conflict, retrying against refreshed state",
            operation=func.__name__,
            attempt=retry_state.attempt_number,
        )

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        @retry(
            stop=stop_after_attempt(2),
            retry=retry_if_exception_type(ConcurrentModification),
            before_sleep=log_conflict,
            reraise=True,
        )
        async def inner() -> T:
            return await func(*args, **kwargs)

        return await inner()

    return wrapper
