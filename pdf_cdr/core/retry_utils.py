"""
Retry utilities for transient persistence and network failures.

Used at the queue poll level (claiming while the job store is flaky) and,
when configured, for callback delivery. Rendering failures are never retried.
"""
import asyncio
import functools
import inspect
import logging
import random
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Type, TypeVar

from pdf_cdr.core.exceptions import CallbackDeliveryError, PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    PersistenceError,
    CallbackDeliveryError,
    ConnectionError,
    TimeoutError,
)


def is_retryable_error(
    error: Exception, retryable_types: Optional[Tuple[Type[BaseException], ...]] = None
) -> bool:
    """True if `error` is one of `retryable_types` (default: TRANSIENT_ERRORS)."""
    return isinstance(error, retryable_types or TRANSIENT_ERRORS)


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """Seconds to wait before retry number `attempt + 1` (0-based attempt)."""
    delay = min(base_delay * exponential_base ** attempt, max_delay)
    if jitter:
        # Up to +50% so concurrent workers do not retry in lockstep
        delay += delay * random.random() * 0.5
    return delay


async def _invoke(func: Callable[..., Any], args, kwargs) -> Any:
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


async def retry_with_backoff(
    func: Callable[..., T],
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_check: Optional[Callable[[Exception], bool]] = None,
    **kwargs
) -> T:
    """
    Call `func` until it succeeds, backing off exponentially between attempts.

    Sync callables run in the default executor so they never block the loop.

    Args:
        func: Async or sync callable
        *args: Positional arguments for func
        max_retries: Retries after the first attempt (0 = call once)
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        exponential_base: Growth factor per attempt
        jitter: Randomize delays
        retryable_check: Predicate deciding whether an error is retried
            (default: is_retryable_error)
        **kwargs: Keyword arguments for func

    Returns:
        Result of func

    Raises:
        The last error once retries are exhausted, or the first
        non-retryable error
    """
    should_retry = retryable_check or is_retryable_error
    attempt = 0
    while True:
        try:
            return await _invoke(func, args, kwargs)
        except Exception as e:
            if attempt >= max_retries or not should_retry(e):
                if attempt:
                    logger.error(f"Giving up after {attempt + 1} attempts: {e}")
                raise
            delay = backoff_delay(attempt, base_delay, max_delay, exponential_base, jitter)
            attempt += 1
            logger.warning(f"Attempt {attempt}/{max_retries + 1} failed, retrying in {delay:.1f}s: {e}")
            await asyncio.sleep(delay)


@dataclass(frozen=True)
class RetryConfig:
    """Backoff policy passed to retry_with_backoff."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True

    def as_kwargs(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def for_queue_polling(cls, max_retries: int = 5) -> "RetryConfig":
        """Claiming while the durable store is unavailable."""
        return cls(max_retries=max_retries, base_delay=0.5, max_delay=30.0)

    @classmethod
    def for_callbacks(cls, max_retries: int = 0, base_delay: float = 1.0) -> "RetryConfig":
        """Callback delivery; zero retries means a single attempt."""
        return cls(max_retries=max_retries, base_delay=base_delay)
