"""
Async retry helper used for calls to external services.
"""

from typing import TypeVar, Callable, Optional, Type, Tuple, Any, Awaitable
import asyncio

T = TypeVar('T')


def _backoff_delay(backoff: str, attempt: int, initial_delay: float, max_delay: float) -> float:
    if backoff == "exponential":
        return min(initial_delay * (2**attempt), max_delay)
    if backoff == "linear":
        return min(initial_delay * (attempt + 1), max_delay)
    return initial_delay


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    backoff: str = "exponential",
    initial_delay: float = 0.5,
    max_delay: float = 30.0,
    retry_on: Tuple[Type[Exception], ...] = (Exception,),
    logger: Optional[Any] = None,
) -> T:
    """
    Retry an async callable with configurable backoff.

    Args:
        func: Zero-argument async callable
        max_attempts: Maximum number of attempts
        backoff: "exponential", "linear", or "constant"
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay between retries
        retry_on: Exceptions that trigger a retry, anything else propagates at once
        logger: Optional logger for retry attempts

    Raises:
        The last exception once every attempt failed
    """
    last_exception: Optional[Exception] = None

    for attempt in range(max_attempts):
        try:
            return await func()
        except retry_on as e:
            last_exception = e

            if attempt < max_attempts - 1:
                delay = _backoff_delay(backoff, attempt, initial_delay, max_delay)
                if logger:
                    logger.warning(
                        "Retry attempt failed",
                        attempt=attempt + 1,
                        max_attempts=max_attempts,
                        delay=delay,
                        error=str(e),
                    )
                await asyncio.sleep(delay)
            elif logger:
                logger.error("All retry attempts failed", attempts=max_attempts, error=str(e))

    if last_exception is None:
        raise RuntimeError("No exception captured but all attempts failed")
    raise last_exception
