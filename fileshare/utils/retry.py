"""
Retry with exponential backoff.

Used around blob store and database calls so that a transient failure
(dropped connection, timeout, locked database) is retried before it is
surfaced to the caller.
"""
import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

logger = logging.getLogger("fileshare.retry")

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: tuple[Type[BaseException], ...] = (Exception,),
    target: Optional[str] = None,
    **kwargs: Any,
) -> T:
    """
    Call ``func(*args, **kwargs)`` and retry on ``retryable_exceptions``.

    Args:
        func: async callable (sync callables are called directly)
        max_attempts: total number of attempts, including the first one
        initial_delay: delay before the second attempt (seconds)
        max_delay: upper bound for a single delay (seconds)
        exponential_base: backoff multiplier
        jitter: randomize each delay to 50%-100% of its value
        retryable_exceptions: exception types that trigger a retry
        target: label for logs (e.g. "storage.upload", "db.increment")

    Returns:
        The return value of ``func``.

    Raises:
        The exception of the last attempt, or any non-retryable exception
        immediately.
    """
    for attempt in range(max_attempts):
        try:
            if asyncio.iscoroutinefunction(func):
                return await func(*args, **kwargs)
            result = func(*args, **kwargs)
            if asyncio.iscoroutine(result):
                return await result
            return result

        except retryable_exceptions as e:
            if attempt == max_attempts - 1:
                extra_err = {
                    "event": "retry",
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                    "error_type": type(e).__name__,
                }
                if target is not None:
                    extra_err["retry_target"] = target
                logger.error(
                    f"Retry exhausted after {max_attempts} attempts",
                    extra=extra_err,
                )
                raise

            delay = min(
                initial_delay * (exponential_base ** attempt),
                max_delay,
            )
            if jitter:
                delay = delay * (0.5 + random.random() * 0.5)

            extra_warn = {
                "event": "retry",
                "attempt": attempt + 1,
                "max_attempts": max_attempts,
                "delay": round(delay, 3),
                "error_type": type(e).__name__,
            }
            if target is not None:
                extra_warn["retry_target"] = target
            logger.warning(
                f"Retry attempt {attempt + 1}/{max_attempts} after {delay:.2f}s",
                extra=extra_warn,
            )

            await asyncio.sleep(delay)

    raise RuntimeError("Retry logic error")
