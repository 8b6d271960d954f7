"""Retry utilities driven by classified retry strategies."""

import asyncio
from functools import wraps
from typing import Awaitable, Callable

import structlog

from checkmate_sync.exceptions import RemoteOperationError
from checkmate_sync.sync.error_classifier import RetryStrategy, StrategyKind

log = structlog.stdlib.get_logger()


def _backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    return min(base_delay * (2**attempt), max_delay)


def retry_delay_for(
    strategy: RetryStrategy,
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
) -> float | None:
    """
    Seconds to wait before retrying an operation that failed with ``strategy``.

    Args:
        strategy: Classified failure
        attempt: Zero-based retry attempt
        base_delay: Initial backoff delay in seconds
        max_delay: Upper bound for the computed backoff

    Returns:
        Delay in seconds, or None when the failure must not be retried automatically
    """
    kind = strategy.kind
    if kind in (StrategyKind.RETRY_IMMEDIATELY, StrategyKind.INVALIDATE_CURSORS_AND_REFETCH_ALL):
        return 0.0
    if kind is StrategyKind.RETRY_AFTER:
        if strategy.retry_after_seconds is not None:
            # the server's delay is a floor, never capped by max_delay
            return max(strategy.retry_after_seconds, 0.0)
        return _backoff(attempt, base_delay, max_delay)
    if kind is StrategyKind.RETRY_WHEN_NETWORK_RESTORED:
        return _backoff(attempt, base_delay, max_delay)
    return None


def strategy_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> Callable:
    """
    Decorator that retries a coroutine function raising RemoteOperationError.

    The wait between attempts follows :func:`retry_delay_for`. Failures whose
    strategy is not retryable are re-raised at once.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum computed delay in seconds
        sleep: Awaitable sleep function, replaceable in tests

    Returns:
        Decorated coroutine function with retry logic
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except RemoteOperationError as e:
                    delay = retry_delay_for(e.strategy, attempt, base_delay, max_delay)
                    if delay is None:
                        log.info(
                            "not_retrying",
                            function=func.__name__,
                            operation=e.operation,
                            strategy=e.strategy.kind.value,
                        )
                        raise

                    if attempt == max_retries:
                        log.error(
                            "max_retries_reached",
                            function=func.__name__,
                            operation=e.operation,
                            max_retries=max_retries,
                            error=str(e),
                        )
                        raise

                    log.warning(
                        "retrying_after_error",
                        function=func.__name__,
                        operation=e.operation,
                        strategy=e.strategy.kind.value,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay_seconds=delay,
                    )
                    await sleep(delay)

        return wrapper

    return decorator
