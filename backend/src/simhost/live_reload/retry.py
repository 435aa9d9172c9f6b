"""Bounded retry with a fixed delay between attempts."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from ..utils.logger import get_logger

T = TypeVar("T")

logger = get_logger("live_reload.retry")


async def retry_async(
    task: Callable[[], Awaitable[T]],
    max_attempts: int = 2,
    delay: float = 0.1,
) -> T:
    """Await ``task()`` until it succeeds or ``max_attempts`` is reached.

    Args:
        task: Zero-argument callable returning a fresh awaitable per attempt
        max_attempts: Total number of attempts, including the first one
        delay: Seconds to wait between two attempts

    Returns:
        The result of the first successful attempt.

    Raises:
        ValueError: If max_attempts is lower than 1.
        Exception: Whatever the last attempt raised.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_exc: Optional[Exception] = None
    for attempt in range(max_attempts):
        try:
            return await task()
        except Exception as e:
            last_exc = e
            if attempt < max_attempts - 1:
                logger.warning(
                    f"Attempt failed ({e}), "
                    f"retrying in {delay:.2f}s (attempt {attempt + 1}/{max_attempts})"
                )
                await asyncio.sleep(delay)
                continue
            raise
    raise last_exc  # type: ignore[misc]
