"""
Concurrency combinators for discovery.

- first_success: race several lookups, keep the first non-None result,
  cancel and await the rest
- interleave: round-robin merge of result buckets
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def first_success(
    factories: Sequence[Callable[[], Awaitable[T | None]]],
    timeout: float,
) -> T | None:
    """
    Run every factory concurrently and return the first non-None result.

    A branch that raises or returns None is treated as a miss. When several
    branches finish in the same wakeup the earliest factory wins. All
    branches still running once a winner is found (or the deadline passes)
    are cancelled and awaited before returning.

    Args:
        factories: Zero-argument callables producing awaitables
        timeout: Overall deadline in seconds

    Returns:
        The winning result, or None if every branch missed or time ran out
    """
    if not factories:
        return None

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    tasks = [asyncio.ensure_future(factory()) for factory in factories]
    pending = set(tasks)

    try:
        while pending:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.debug(f"first_success deadline hit with {len(pending)} branches pending")
                return None

            done, pending = await asyncio.wait(
                pending,
                timeout=remaining,
                return_when=asyncio.FIRST_COMPLETED,
            )

            for task in (t for t in tasks if t in done):
                if task.cancelled():
                    continue
                exc = task.exception()
                if exc is not None:
                    logger.debug(f"first_success branch failed: {type(exc).__name__}: {exc}")
                    continue
                result = task.result()
                if result is not None:
                    return result

        return None
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def interleave(buckets: Sequence[Sequence[T]]) -> list[T]:
    """Take one element from each bucket in turn until all are exhausted."""
    merged: list[T] = []
    longest = max((len(bucket) for bucket in buckets), default=0)
    for i in range(longest):
        for bucket in buckets:
            if i < len(bucket):
                merged.append(bucket[i])
    return merged
